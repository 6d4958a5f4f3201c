# npm_wildcard/adapters/inventory.py
from npm_wildcard.adapters.npm import NpmClient
from npm_wildcard.models import Certificate


class Inventory:
    """Read-side view over the certificate set held by Nginx Proxy Manager.

    Holds nothing between calls: every query re-fetches, because the
    uploader and the sweeper both depend on seeing records created moments ago.
    """
    def __init__(self, client: NpmClient):
        self.client = client

    def all(self) -> list[Certificate]:
        return self.client.list_certificates()

    def matching_any(self, wildcards, certs: list[Certificate] | None = None) -> list[Certificate]:
        targets = set(wildcards)
        certs = self.all() if certs is None else certs
        return [c for c in certs if targets.intersection(c.domain_names)]

    def find_by_nice_name(self, nice_name: str, prefer_id=None) -> Certificate | None:
        hits = [c for c in self.all() if c.nice_name == nice_name]
        if not hits:
            return None
        if prefer_id is not None:
            # a namesake from an earlier run is never a stand-in for the record just created
            return next((c for c in hits if str(c.id) == str(prefer_id)), None)
        # same-day reruns share a name; the newest record wins
        return max(hits, key=lambda c: (c.created_on or "", int(c.id) if str(c.id).isdigit() else -1))
