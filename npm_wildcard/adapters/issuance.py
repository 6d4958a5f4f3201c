# npm_wildcard/adapters/issuance.py
import logging
import os
import shlex
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Callable, Mapping

from npm_wildcard.challenge import base_domain
from npm_wildcard.errors import IssuanceFailure
from npm_wildcard.models import IssuedCertificate

logger = logging.getLogger(__name__)

HOOK_TEMPLATE = """#!/bin/sh
# generated by npm-wildcard; certbot calls this with CERTBOT_DOMAIN / CERTBOT_VALIDATION set
exec {python} -m npm_wildcard.hooks {phase}
"""


class CertbotIssuer:
    """
    issue(wildcard) -> IssuedCertificate, hiding certbot's directory conventions.

    Layout under state_dir:
      certbot/config   --config-dir (live/<base>/fullchain.pem, privkey.pem)
      certbot/work     --work-dir
      certbot/logs     --logs-dir
      hooks/           generated auth/cleanup hook wrappers
    certbot/ is wiped before every issuance so no run inherits another's lineage.
    """
    def __init__(self, state_dir: Path, certbot_bin: str = "certbot", email: str = "",
                 auth_hook: Path | None = None, cleanup_hook: Path | None = None,
                 hook_env: Mapping[str, str] | None = None,
                 runner: Callable[..., subprocess.CompletedProcess] = subprocess.run):
        self.state_dir = Path(state_dir)
        self.certbot_bin = certbot_bin
        self.email = email
        self.auth_hook = Path(auth_hook) if auth_hook else None
        self.cleanup_hook = Path(cleanup_hook) if cleanup_hook else None
        self.hook_env = dict(hook_env or {})
        self.runner = runner

    # ------------------ paths ------------------
    @property
    def certbot_root(self) -> Path:
        return self.state_dir / "certbot"

    @property
    def config_dir(self) -> Path:
        return self.certbot_root / "config"

    @property
    def work_dir(self) -> Path:
        return self.certbot_root / "work"

    @property
    def logs_dir(self) -> Path:
        return self.certbot_root / "logs"

    def live_paths(self, wildcard: str) -> tuple[Path, Path]:
        live = self.config_dir / "live" / base_domain(wildcard)
        return live / "fullchain.pem", live / "privkey.pem"

    # ------------------ preparation ------------------
    def prepare(self) -> tuple[Path, Path]:
        """Wipe certbot state, recreate the directories, return executable hook paths."""
        shutil.rmtree(self.certbot_root, ignore_errors=True)
        for d in (self.config_dir, self.work_dir, self.logs_dir):
            d.mkdir(parents=True, exist_ok=True)
        auth = self._hook(self.auth_hook, "auth")
        cleanup = self._hook(self.cleanup_hook, "cleanup")
        return auth, cleanup

    def _hook(self, configured: Path | None, phase: str) -> Path:
        if configured is not None:
            if not configured.is_file():
                raise IssuanceFailure(f"{phase} hook not found: {configured}")
            path = configured
        else:
            hooks_dir = self.state_dir / "hooks"
            hooks_dir.mkdir(parents=True, exist_ok=True)
            path = hooks_dir / f"{phase}-hook.sh"
            path.write_text(HOOK_TEMPLATE.format(python=shlex.quote(sys.executable), phase=phase),
                            encoding="utf-8")
        path.chmod(0o755)
        return path

    def command(self, wildcard: str, auth_hook: Path, cleanup_hook: Path) -> list[str]:
        argv = [
            self.certbot_bin, "certonly",
            "--manual",
            "--preferred-challenges", "dns",
            "--agree-tos",
            "--no-eff-email",
            "--non-interactive",
            "--manual-auth-hook", str(auth_hook),
            "--manual-cleanup-hook", str(cleanup_hook),
            "-d", wildcard,
            "--config-dir", str(self.config_dir),
            "--work-dir", str(self.work_dir),
            "--logs-dir", str(self.logs_dir),
        ]
        if self.email:
            argv += ["--email", self.email]
        else:
            argv += ["--register-unsafely-without-email"]
        return argv

    # ------------------ issue ------------------
    def issue(self, wildcard: str) -> IssuedCertificate:
        auth, cleanup = self.prepare()
        argv = self.command(wildcard, auth, cleanup)
        cmd = " ".join(shlex.quote(a) for a in argv)
        logger.info("Running certbot for %s (DNS-01, this can take a long time)", wildcard)
        logger.debug("certbot argv: %s", cmd)
        try:
            p = self.runner(argv, capture_output=True, text=True,
                            env={**os.environ, **self.hook_env})
        except OSError as e:
            raise IssuanceFailure(f"could not start certbot ({self.certbot_bin}): {e}") from e

        if p.returncode != 0:
            raise IssuanceFailure(
                f"certbot failed with code {p.returncode}:\n{cmd}\n"
                f"--- stdout ---\n{p.stdout}\n--- stderr ---\n{p.stderr}",
                returncode=p.returncode, stdout=p.stdout or "", stderr=p.stderr or "",
            )

        fullchain, privkey = self.live_paths(wildcard)
        if not fullchain.is_file() or not privkey.is_file():
            raise IssuanceFailure(
                f"certbot reported success but expected files are missing: {fullchain} / {privkey}",
                returncode=p.returncode, stdout=p.stdout or "", stderr=p.stderr or "",
            )
        logger.info("certbot issued %s", wildcard)
        return IssuedCertificate(
            domain=wildcard,
            fullchain=fullchain.read_text(encoding="utf-8"),
            privkey=privkey.read_text(encoding="utf-8"),
        )
