# npm_wildcard/challenge.py
"""DNS-01 challenge publication and propagation polling."""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence

from npm_wildcard.adapters.dns_publisher import DnsRecordPublisher
from npm_wildcard.adapters.resolver import query_txt
from npm_wildcard.errors import ChallengePublishError, PropagationTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 20
DEFAULT_INTERVAL = 240.0


class ChallengeState(str, Enum):
    REQUESTED = "requested"
    PUBLISHED = "published"
    AWAITING_PROPAGATION = "awaiting_propagation"
    VERIFIED = "verified"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


def base_domain(domain: str) -> str:
    """'*.example.com' -> 'example.com'"""
    d = domain.strip().lower().rstrip(".")
    return d[2:] if d.startswith("*.") else d


def challenge_hostname(domain: str) -> str:
    return f"_acme-challenge.{base_domain(domain)}"


# ------------------ generic polling ------------------
@dataclass(frozen=True)
class PollResult:
    ok: bool
    attempts: int


def poll_until(predicate: Callable[[int], bool], attempts: int, interval: float,
               sleep: Callable[[float], None] = time.sleep) -> PollResult:
    """
    Call predicate(attempt) up to `attempts` times, sleeping `interval` seconds
    between calls. Stops at the first truthy result. No sleep after the last try.
    """
    for attempt in range(1, attempts + 1):
        if predicate(attempt):
            return PollResult(True, attempt)
        if attempt < attempts:
            sleep(interval)
    return PollResult(False, attempts)


# ------------------ publisher / verifier ------------------
class ChallengePublisher:
    """Hands the challenge value to the DNS-record collaborator."""
    def __init__(self, dns_publisher: DnsRecordPublisher):
        self.dns = dns_publisher

    def publish(self, hostname: str, token: str) -> None:
        logger.info("Publishing TXT %s", hostname)
        try:
            self.dns.publish(hostname, token)
        except ChallengePublishError:
            raise
        except Exception as e:
            raise ChallengePublishError(hostname, str(e)) from e


class PropagationVerifier:
    """
    Polls nameservers until one of them serves the expected TXT value.
    A failing nameserver is skipped for that attempt; any match wins.
    """
    def __init__(self, nameservers: Sequence[str], attempts: int = DEFAULT_ATTEMPTS,
                 interval: float = DEFAULT_INTERVAL,
                 query: Callable[[str, str], list[str]] = query_txt,
                 sleep: Callable[[float], None] = time.sleep):
        if not nameservers:
            raise ValueError("at least one nameserver is required")
        self.nameservers = list(nameservers)
        self.attempts = attempts
        self.interval = interval
        self.query = query
        self.sleep = sleep

    def _visible(self, hostname: str, expected: str, attempt: int) -> bool:
        for ns in self.nameservers:
            try:
                values = self.query(hostname, ns)
            except Exception as e:
                logger.warning("TXT lookup %s @%s failed: %s", hostname, ns, e)
                continue
            if expected in values:
                logger.info("TXT %s visible on %s (attempt %d/%d)",
                            hostname, ns, attempt, self.attempts)
                return True
            logger.debug("TXT %s @%s -> %s", hostname, ns, values)
        logger.info("TXT %s not propagated yet (attempt %d/%d), waiting %ss",
                    hostname, attempt, self.attempts, self.interval)
        return False

    def verify(self, hostname: str, expected: str) -> int:
        """Returns the attempt that succeeded; raises PropagationTimeoutError otherwise."""
        result = poll_until(lambda n: self._visible(hostname, expected, n),
                            self.attempts, self.interval, self.sleep)
        if not result.ok:
            raise PropagationTimeoutError(hostname, result.attempts, self.interval)
        return result.attempts


@dataclass
class Challenge:
    """One DNS-01 challenge walking REQUESTED -> ... -> VERIFIED | TIMED_OUT."""
    domain: str
    token: str
    state: ChallengeState = ChallengeState.REQUESTED
    attempts: int = 0
    history: list[ChallengeState] = field(default_factory=list)

    @property
    def hostname(self) -> str:
        return challenge_hostname(self.domain)

    def _to(self, state: ChallengeState):
        self.history.append(self.state)
        self.state = state


def run_challenge(challenge: Challenge, publisher: ChallengePublisher,
                  verifier: PropagationVerifier) -> Challenge:
    """Publish then wait for propagation. Raises on publish failure or timeout."""
    try:
        publisher.publish(challenge.hostname, challenge.token)
    except ChallengePublishError:
        challenge._to(ChallengeState.FAILED)
        raise
    challenge._to(ChallengeState.PUBLISHED)

    challenge._to(ChallengeState.AWAITING_PROPAGATION)
    try:
        challenge.attempts = verifier.verify(challenge.hostname, challenge.token)
    except PropagationTimeoutError as e:
        challenge.attempts = e.attempts
        challenge._to(ChallengeState.TIMED_OUT)
        raise
    challenge._to(ChallengeState.VERIFIED)
    return challenge
