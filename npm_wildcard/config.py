# npm_wildcard/config.py
"""Run configuration, resolved once from flags and environment (flags win)."""

import argparse
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Sequence

from npm_wildcard.errors import ConfigurationError
from npm_wildcard.logsetup import normalize_level

DEFAULT_NAMESERVERS = ("ns.udag.de",)
_TRUE = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Config:
    base_url: str
    identity: str
    secret: str
    domain: str
    wildcards: tuple[str, ...]
    dns_username: str
    dns_password: str
    dry_run: bool = False
    warn_days: int = 30
    cleanup: bool = False
    cleanup_grace_minutes: float = 5.0
    include_redirection_hosts: bool = False
    nameservers: tuple[str, ...] = DEFAULT_NAMESERVERS
    poll_attempts: int = 20
    poll_interval: float = 240.0
    certbot_bin: str = "certbot"
    certbot_email: str = ""
    state_dir: Path = field(default_factory=lambda: Path("npm-wildcard-state"))
    auth_hook: Path | None = None
    cleanup_hook: Path | None = None
    npm_timeout: float = 30.0
    npm_verify_tls: bool = True
    log_level: str = "INFO"

    def hook_environment(self) -> dict[str, str]:
        """Variables the certbot hook subprocess needs to rebuild its own Config."""
        env = {
            "DOMAIN": self.domain,
            "UD_USERNAME": self.dns_username,
            "UD_PASSWORD": self.dns_password,
            "DNS_NAMESERVERS": ",".join(self.nameservers),
            "DNS_POLL_ATTEMPTS": str(self.poll_attempts),
            "DNS_POLL_INTERVAL": str(self.poll_interval),
            "LOG_LEVEL": self.log_level,
        }
        return env


def _split_csv(values) -> list[str]:
    out: list[str] = []
    for v in values or []:
        out += [p.strip() for p in str(v).split(",") if p.strip()]
    return out


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="npm-wildcard",
        description="Renew wildcard certificates and repoint Nginx Proxy Manager hosts.",
    )
    p.add_argument("command", nargs="?", default="run", choices=("run", "serve"))
    p.add_argument("--base-url")
    p.add_argument("--identity")
    p.add_argument("--secret")
    p.add_argument("--domain")
    p.add_argument("--wildcards", action="append",
                   help="comma-separated, may be repeated")
    p.add_argument("--dns-username")
    p.add_argument("--dns-password")
    p.add_argument("--dry-run", action="store_true", default=None)
    p.add_argument("--warn-days", type=int)
    p.add_argument("--cleanup", action="store_true", default=None)
    p.add_argument("--cleanup-grace-minutes", type=float)
    p.add_argument("--include-redirection-hosts", action="store_true", default=None)
    p.add_argument("--nameservers", action="append")
    p.add_argument("--poll-attempts", type=int)
    p.add_argument("--poll-interval", type=float)
    p.add_argument("--certbot-bin")
    p.add_argument("--certbot-email")
    p.add_argument("--state-dir")
    p.add_argument("--auth-hook")
    p.add_argument("--cleanup-hook")
    p.add_argument("--log-level")
    p.add_argument("--host", default="0.0.0.0", help="serve: bind address")
    p.add_argument("--port", type=int, default=8080, help="serve: bind port")
    return p


def load_config(argv: Sequence[str] | None = None,
                environ: Mapping[str, str] | None = None,
                args: argparse.Namespace | None = None) -> Config:
    """Build the Config for one process. Raises ConfigurationError listing every gap."""
    env = os.environ if environ is None else environ
    if args is None:
        args = build_parser().parse_args(list(argv or []))

    def pick(flag, name, default=None):
        return flag if flag not in (None, "") else env.get(name, default)

    def flag_bool(flag, name) -> bool:
        if flag:
            return True
        return str(env.get(name, "")).strip().lower() in _TRUE

    def number(raw, name, cast):
        try:
            return cast(raw)
        except (TypeError, ValueError):
            raise ConfigurationError(message=f"{name} must be a number, got {raw!r}")

    base_url = pick(args.base_url, "NPM_BASE_URL")
    identity = pick(args.identity, "NPM_IDENTITY")
    secret = pick(args.secret, "NPM_SECRET")
    domain = pick(args.domain, "DOMAIN")
    wildcards = _split_csv(args.wildcards) or _split_csv([env.get("WILDCARDS", "")])
    dns_username = pick(args.dns_username, "UD_USERNAME", "")
    dns_password = pick(args.dns_password, "UD_PASSWORD", "")

    missing = [name for name, value in (
        ("NPM_BASE_URL", base_url), ("NPM_IDENTITY", identity),
        ("NPM_SECRET", secret), ("DOMAIN", domain), ("WILDCARDS", wildcards),
        ("UD_USERNAME", dns_username), ("UD_PASSWORD", dns_password),
    ) if not value]
    if missing:
        raise ConfigurationError(missing)

    bad = [w for w in wildcards if not w.startswith("*.") or len(w) < 3]
    if bad:
        raise ConfigurationError(message=f"Wildcards must look like '*.<base-domain>': {bad}")

    nameservers = _split_csv(args.nameservers) or _split_csv([env.get("DNS_NAMESERVERS", "")])

    log_level = normalize_level(pick(args.log_level, "LOG_LEVEL", "INFO"))

    auth_hook = pick(args.auth_hook, "AUTH_HOOK")
    cleanup_hook = pick(args.cleanup_hook, "CLEANUP_HOOK")

    return Config(
        base_url=str(base_url).rstrip("/"),
        identity=identity,
        secret=secret,
        domain=domain,
        wildcards=tuple(wildcards),
        dns_username=dns_username,
        dns_password=dns_password,
        dry_run=flag_bool(args.dry_run, "DRY_RUN"),
        warn_days=number(pick(args.warn_days, "WARN_DAYS", 30), "WARN_DAYS", int),
        cleanup=flag_bool(args.cleanup, "CLEANUP"),
        cleanup_grace_minutes=number(
            pick(args.cleanup_grace_minutes, "CLEANUP_GRACE_MINUTES", 5),
            "CLEANUP_GRACE_MINUTES", float),
        include_redirection_hosts=flag_bool(args.include_redirection_hosts,
                                            "INCLUDE_REDIRECTION_HOSTS"),
        nameservers=tuple(nameservers) or DEFAULT_NAMESERVERS,
        poll_attempts=number(pick(args.poll_attempts, "DNS_POLL_ATTEMPTS", 20),
                             "DNS_POLL_ATTEMPTS", int),
        poll_interval=number(pick(args.poll_interval, "DNS_POLL_INTERVAL", 240),
                             "DNS_POLL_INTERVAL", float),
        certbot_bin=pick(args.certbot_bin, "CERTBOT_BIN", "certbot"),
        certbot_email=pick(args.certbot_email, "CERTBOT_EMAIL", ""),
        state_dir=Path(pick(args.state_dir, "STATE_DIR", "npm-wildcard-state")).resolve(),
        auth_hook=Path(auth_hook) if auth_hook else None,
        cleanup_hook=Path(cleanup_hook) if cleanup_hook else None,
        npm_timeout=number(env.get("NPM_TIMEOUT", 30), "NPM_TIMEOUT", float),
        npm_verify_tls=str(env.get("NPM_VERIFY_TLS", "true")).lower() in _TRUE,
        log_level=log_level,
    )


def load_hook_config(environ: Mapping[str, str] | None = None) -> dict:
    """Subset of settings the certbot hook needs; it never talks to NPM."""
    env = os.environ if environ is None else environ
    missing = [n for n in ("DOMAIN", "UD_USERNAME", "UD_PASSWORD") if not env.get(n)]
    if missing:
        raise ConfigurationError(missing)
    try:
        attempts = int(env.get("DNS_POLL_ATTEMPTS", 20))
        interval = float(env.get("DNS_POLL_INTERVAL", 240))
    except ValueError as e:
        raise ConfigurationError(message=f"Invalid DNS poll settings: {e}") from e
    return {
        "domain": env["DOMAIN"],
        "username": env["UD_USERNAME"],
        "password": env["UD_PASSWORD"],
        "nameservers": tuple(_split_csv([env.get("DNS_NAMESERVERS", "")])) or DEFAULT_NAMESERVERS,
        "attempts": attempts,
        "interval": interval,
    }
