# npm_wildcard/decision.py
"""Reuse-or-renew decision for one wildcard."""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from npm_wildcard.models import Certificate, utcnow

logger = logging.getLogger(__name__)


class Action(str, Enum):
    REUSE = "reuse"
    RENEW = "renew"


class RenewReason(str, Enum):
    PREEMPTIVE = "preemptive"
    MISSING = "missing"


@dataclass(frozen=True)
class Decision:
    wildcard: str
    action: Action
    cert_id: int | str | None = None
    reason: RenewReason | None = None
    expires_on: str | None = None
    expiring_cert_id: int | str | None = None

    @classmethod
    def reuse(cls, wildcard: str, cert: Certificate) -> "Decision":
        return cls(wildcard, Action.REUSE, cert_id=cert.id, expires_on=cert.expires_on)

    @classmethod
    def renew(cls, wildcard: str, reason: RenewReason, expiring: Certificate | None = None) -> "Decision":
        return cls(wildcard, Action.RENEW, reason=reason,
                   expires_on=expiring.expires_on if expiring else None,
                   expiring_cert_id=expiring.id if expiring else None)


@dataclass
class Partition:
    expired: list[Certificate]
    expiring_soon: list[Certificate]
    valid: list[Certificate]


def certificates_for(wildcard: str, certs: list[Certificate]) -> list[Certificate]:
    return [c for c in certs if wildcard in c.domain_names]


def partition(certs: list[Certificate], warn_days: int = 30, now: datetime | None = None) -> Partition:
    now = now or utcnow()
    out = Partition([], [], [])
    for c in certs:
        if c.expired(now):
            out.expired.append(c)
        elif c.expiring_soon(warn_days, now):
            out.expiring_soon.append(c)
        else:
            out.valid.append(c)
    return out


def longest_lived(certs: list[Certificate]) -> Certificate:
    return sorted(certs, key=lambda c: c.expiry_sort_key(), reverse=True)[0]


def decide(wildcard: str, certs: list[Certificate], warn_days: int = 30,
           now: datetime | None = None) -> Decision:
    """Pick the current certificate for `wildcard`, or say why a new one is needed."""
    parts = partition(certificates_for(wildcard, certs), warn_days, now)

    if parts.valid:
        best = longest_lived(parts.valid)
        logger.info("Found valid certificate id=%s for %s expires_on=%s",
                    best.id, wildcard, best.expires_on)
        return Decision.reuse(wildcard, best)

    if parts.expiring_soon:
        soon = longest_lived(parts.expiring_soon)
        logger.warning("Certificate id=%s for %s expires soon (%s); renewing preemptively",
                       soon.id, wildcard, soon.expires_on)
        return Decision.renew(wildcard, RenewReason.PREEMPTIVE, soon)

    logger.warning("No valid certificate found for %s (%d expired); renewing",
                   wildcard, len(parts.expired))
    return Decision.renew(wildcard, RenewReason.MISSING)
