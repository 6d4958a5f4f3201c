# npm_wildcard/cleanup.py
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from npm_wildcard.adapters.inventory import Inventory
from npm_wildcard.adapters.npm import NpmClient
from npm_wildcard.errors import NpmApiError
from npm_wildcard.hosts import PROXY_HOSTS, REDIRECTION_HOSTS
from npm_wildcard.models import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Deletion:
    cert_id: int | str
    domain_names: tuple[str, ...]
    reason: str  # "expired" | "unreferenced"
    deleted: bool


class CleanupSweeper:
    """Deletes expired or unreferenced certificates for the target wildcards.

    Anything created within the grace period is left alone, whatever its state,
    so a certificate is never removed while hosts are still being moved onto it.
    """
    def __init__(self, client: NpmClient, inventory: Inventory, grace_minutes: float = 5.0):
        self.client = client
        self.inventory = inventory
        self.grace = timedelta(minutes=grace_minutes)

    def referenced_ids(self) -> set[str]:
        used = set()
        for kind in (PROXY_HOSTS, REDIRECTION_HOSTS):
            for h in self.client.list_hosts(kind.group):
                if h.get("certificate_id"):
                    used.add(str(h["certificate_id"]))
        return used

    def sweep(self, wildcards, dry_run: bool = False, now: datetime | None = None,
              created_this_run=()) -> list[Deletion]:
        now = now or utcnow()
        fresh = {str(i) for i in created_this_run}
        logger.info("Cleanup: scanning for unused or expired certificates")
        used = self.referenced_ids()
        out: list[Deletion] = []
        for cert in self.inventory.matching_any(wildcards):
            expired = cert.expired(now)
            if str(cert.id) in used and not expired:
                continue
            created = cert.created_at()
            if str(cert.id) in fresh or (created is not None and now - created < self.grace):
                logger.info("Skip delete cert id=%s (created within grace period)", cert.id)
                continue

            reason = "expired" if expired else "unreferenced"
            if dry_run:
                logger.info("Dry-run: would delete certificate id=%s %s (%s)",
                            cert.id, cert.domain_names, reason)
                out.append(Deletion(cert.id, tuple(cert.domain_names), reason, False))
                continue
            try:
                self.client.delete_certificate(cert.id)
            except NpmApiError as e:
                logger.warning("Skip delete cert id=%s (%s): %s", cert.id, reason, e)
                continue
            logger.info("Deleted certificate id=%s %s (%s)", cert.id, cert.domain_names, reason)
            out.append(Deletion(cert.id, tuple(cert.domain_names), reason, True))

        if not out:
            logger.info("Cleanup: nothing to delete.")
        return out
