# npm_wildcard/cli.py
import logging
import sys

from npm_wildcard.config import build_parser, load_config
from npm_wildcard.errors import ConfigurationError
from npm_wildcard.logsetup import configure_logging, normalize_level
from npm_wildcard.orchestrator import Orchestrator

logger = logging.getLogger("npm_wildcard")


def main(argv=None) -> int:
    """Exit 0 when the run completes (even with failed wildcards), 1 otherwise."""
    args = build_parser().parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(normalize_level(args.log_level))
    try:
        cfg = load_config(args=args)
    except ConfigurationError as e:
        logger.error("%s", e)
        logger.error("Set them via flags (--base-url, --identity, --secret, --domain, --wildcards, "
                     "--dns-username, --dns-password) or the matching environment variables")
        return 1
    configure_logging(cfg.log_level)

    if args.command == "serve":
        import uvicorn
        from npm_wildcard.server import create_app
        uvicorn.run(create_app(cfg), host=args.host, port=args.port, log_config=None)
        return 0

    try:
        Orchestrator.from_config(cfg).run(cfg.wildcards)
    except Exception:
        logger.exception("Run aborted")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
