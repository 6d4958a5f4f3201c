from pathlib import Path

import pytest

from npm_wildcard.config import load_config, load_hook_config
from npm_wildcard.errors import ConfigurationError

ENV = {
    "NPM_BASE_URL": "http://npm.local:81/",
    "NPM_IDENTITY": "admin@example.com",
    "NPM_SECRET": "pw",
    "DOMAIN": "example.com",
    "WILDCARDS": "*.example.com, *.example.org",
    "UD_USERNAME": "ud-user",
    "UD_PASSWORD": "ud-pass",
}


def test_environment_only():
    cfg = load_config([], ENV)
    assert cfg.base_url == "http://npm.local:81"
    assert cfg.wildcards == ("*.example.com", "*.example.org")
    assert cfg.dry_run is False
    assert cfg.warn_days == 30
    assert cfg.nameservers == ("ns.udag.de",)
    assert cfg.poll_attempts == 20 and cfg.poll_interval == 240.0
    assert cfg.cleanup is False and cfg.include_redirection_hosts is False


def test_flags_win_over_environment():
    cfg = load_config(["--base-url", "https://other", "--wildcards", "*.a.com",
                       "--wildcards", "*.b.com,*.c.com", "--dry-run", "--warn-days", "10"], ENV)
    assert cfg.base_url == "https://other"
    assert cfg.wildcards == ("*.a.com", "*.b.com", "*.c.com")
    assert cfg.dry_run is True
    assert cfg.warn_days == 10


def test_all_missing_names_are_reported():
    with pytest.raises(ConfigurationError) as ei:
        load_config([], {"DOMAIN": "example.com"})
    assert ei.value.missing == ["NPM_BASE_URL", "NPM_IDENTITY", "NPM_SECRET",
                                "WILDCARDS", "UD_USERNAME", "UD_PASSWORD"]


def test_wildcards_must_be_wildcards():
    with pytest.raises(ConfigurationError, match="example.com"):
        load_config([], {**ENV, "WILDCARDS": "example.com"})


def test_bad_number():
    with pytest.raises(ConfigurationError, match="WARN_DAYS"):
        load_config([], {**ENV, "WARN_DAYS": "soon"})


def test_boolean_environment():
    cfg = load_config([], {**ENV, "DRY_RUN": "true", "CLEANUP": "1", "NPM_VERIFY_TLS": "no"})
    assert cfg.dry_run and cfg.cleanup
    assert cfg.npm_verify_tls is False


def test_hook_environment_round_trips():
    cfg = load_config(["--nameservers", "ns1.example.net,ns2.example.net",
                       "--poll-attempts", "3", "--poll-interval", "1.5"], ENV)
    hook = load_hook_config(cfg.hook_environment())
    assert hook["domain"] == "example.com"
    assert hook["nameservers"] == ("ns1.example.net", "ns2.example.net")
    assert hook["attempts"] == 3 and hook["interval"] == 1.5


def test_hook_config_requires_credentials():
    with pytest.raises(ConfigurationError) as ei:
        load_hook_config({"DOMAIN": "example.com"})
    assert ei.value.missing == ["UD_USERNAME", "UD_PASSWORD"]


def test_paths():
    cfg = load_config(["--auth-hook", "/opt/hooks/auth.sh", "--state-dir", "/var/lib/npmw"], ENV)
    assert cfg.auth_hook == Path("/opt/hooks/auth.sh")
    assert cfg.cleanup_hook is None
    assert cfg.state_dir == Path("/var/lib/npmw")


def test_unknown_log_level_falls_back_to_info():
    assert load_config(["--log-level", "loud"], ENV).log_level == "INFO"
    assert load_config([], {**ENV, "LOG_LEVEL": "debug"}).log_level == "DEBUG"


def test_hook_config_keys():
    hook = load_hook_config(load_config([], ENV).hook_environment())
    assert set(hook) == {"domain", "username", "password", "nameservers", "attempts", "interval"}
