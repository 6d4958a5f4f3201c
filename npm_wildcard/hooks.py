# npm_wildcard/hooks.py
"""
certbot --manual-auth-hook / --manual-cleanup-hook entry point.

certbot exports CERTBOT_DOMAIN and CERTBOT_VALIDATION; the run's own settings
arrive through the environment written by Config.hook_environment().
A non-zero exit makes certbot abort the order, which the issuer reports.
"""

import logging
import os
import sys

from npm_wildcard.adapters.dns_publisher import UnitedDomainsPublisher
from npm_wildcard.challenge import (
    Challenge,
    ChallengePublisher,
    PropagationVerifier,
    run_challenge,
)
from npm_wildcard.config import load_hook_config
from npm_wildcard.errors import NpmWildcardError
from npm_wildcard.logsetup import configure_logging, normalize_level

logger = logging.getLogger("npm_wildcard.hooks")


def auth_hook(environ=None, publisher=None, verifier=None) -> Challenge:
    env = os.environ if environ is None else environ
    domain = env.get("CERTBOT_DOMAIN", "")
    token = env.get("CERTBOT_VALIDATION", "")
    if not domain or not token:
        raise NpmWildcardError("CERTBOT_DOMAIN and CERTBOT_VALIDATION must be set by certbot")
    cfg = load_hook_config(env)
    if publisher is None:
        publisher = ChallengePublisher(UnitedDomainsPublisher(cfg["username"], cfg["password"], cfg["domain"]))
    if verifier is None:
        verifier = PropagationVerifier(cfg["nameservers"], cfg["attempts"], cfg["interval"])
    challenge = Challenge(domain=domain, token=token)
    run_challenge(challenge, publisher, verifier)
    logger.info("DNS challenge for %s verified after %d attempt(s)", domain, challenge.attempts)
    return challenge


def cleanup_hook(environ=None) -> None:
    env = os.environ if environ is None else environ
    # the record stays; the next publish overwrites the same row
    logger.info("Cleanup hook for %s: leaving TXT record in place", env.get("CERTBOT_DOMAIN", "?"))


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    configure_logging(normalize_level(os.environ.get("LOG_LEVEL")))
    phase = argv[0] if argv else ""
    try:
        if phase == "auth":
            auth_hook()
        elif phase == "cleanup":
            cleanup_hook()
        else:
            logger.error("usage: npm-wildcard-hook auth|cleanup")
            return 2
    except NpmWildcardError as e:
        logger.error("%s hook failed: %s", phase, e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
