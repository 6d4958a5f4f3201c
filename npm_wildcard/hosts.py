# npm_wildcard/hosts.py
"""Repoint proxy/redirection hosts covered by a wildcard to a certificate."""

import json
import logging
from dataclasses import dataclass

from npm_wildcard.adapters.npm import NpmClient
from npm_wildcard.errors import HostUpdateError, NpmApiError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostKind:
    """A host variant: its API collection and the fields a PUT may carry."""
    group: str
    mutable_fields: tuple[str, ...]

    def update_payload(self, current: dict, cert_id) -> dict:
        body = {f: current[f] for f in self.mutable_fields if f in current}
        body["certificate_id"] = cert_id
        return body


PROXY_HOSTS = HostKind("proxy-hosts", (
    "domain_names", "forward_scheme", "forward_host", "forward_port",
    "access_list_id", "certificate_id", "ssl_forced", "http2_support",
    "hsts_enabled", "hsts_subdomains", "block_exploits", "caching_enabled",
    "allow_websocket_upgrade", "advanced_config", "locations", "meta", "enabled",
))

REDIRECTION_HOSTS = HostKind("redirection-hosts", (
    "domain_names", "forward_domain_name", "forward_scheme", "forward_http_code",
    "certificate_id", "ssl_forced", "http2_support", "hsts_enabled",
    "hsts_subdomains", "block_exploits", "preserve_path", "advanced_config",
    "meta", "enabled",
))


def normalize_domains(domains) -> list[str]:
    if not domains:
        return []
    if isinstance(domains, (list, tuple)):
        return [str(d).strip() for d in domains if str(d).strip()]
    if isinstance(domains, str):
        return [d.strip() for d in domains.split(",") if d.strip()]
    return []


def host_matches_wildcard(host_domain: str, wildcard: str) -> bool:
    """
    Exactly one label in front of the base:
      '*.example.com' matches 'arcade.example.com'
      but not 'a.b.example.com' and not 'example.com'.
    """
    base = wildcard[2:] if wildcard.startswith("*.") else wildcard
    host = host_domain.strip().lower().rstrip(".")
    base = base.lower().rstrip(".")
    if not host.endswith(f".{base}"):
        return False
    return len(host.split(".")) == len(base.split(".")) + 1


class HostReassigner:
    def __init__(self, client: NpmClient, include_redirection_hosts: bool = False):
        self.client = client
        self.kinds = [PROXY_HOSTS]
        if include_redirection_hosts:
            self.kinds.append(REDIRECTION_HOSTS)

    def reassign(self, wildcard: str, cert_id, dry_run: bool = False) -> int:
        """Returns how many hosts were switched (or would be, in dry-run)."""
        changed = 0
        seen = set()
        for kind in self.kinds:
            logger.info("Scanning %s for domains matching %s", kind.group, wildcard)
            for host in self.client.list_hosts(kind.group):
                host_id = host.get("id")
                if host_id is None:
                    logger.warning("[skip] %s entry without id: %s", kind.group, host.get("domain_names"))
                    continue
                if (kind.group, str(host_id)) in seen:
                    continue
                seen.add((kind.group, str(host_id)))
                domains = normalize_domains(host.get("domain_names"))
                if not any(host_matches_wildcard(d, wildcard) for d in domains):
                    continue
                if str(host.get("certificate_id")) == str(cert_id):
                    logger.info("[skip] %s id=%s already uses cert %s", kind.group, host_id, cert_id)
                    continue

                logger.info("%s id=%s %s switching certificate -> %s",
                            kind.group, host_id, domains, cert_id)
                if dry_run:
                    logger.info("Dry-run: would update %s id=%s", kind.group, host_id)
                    changed += 1
                    continue
                try:
                    self._update(kind, host_id, cert_id)
                except HostUpdateError as e:
                    logger.error("%s; current host state: %s", e,
                                 json.dumps(e.current_state, default=str))
                    continue
                logger.info("%s id=%s updated to certificate %s", kind.group, host_id, cert_id)
                changed += 1
        return changed

    def _update(self, kind: HostKind, host_id, cert_id) -> None:
        try:
            current = self.client.get_host(kind.group, host_id)
        except NpmApiError as e:
            raise HostUpdateError(kind.group, host_id, f"could not fetch host: {e}") from e
        body = kind.update_payload(current, cert_id)
        try:
            self.client.update_host(kind.group, host_id, body)
        except NpmApiError as e:
            raise HostUpdateError(kind.group, host_id, str(e), self._current_state(kind, host_id)) from e

    def _current_state(self, kind: HostKind, host_id) -> dict | None:
        try:
            return self.client.get_host(kind.group, host_id)
        except NpmApiError as e:
            logger.warning("could not re-read %s id=%s: %s", kind.group, host_id, e)
            return None
