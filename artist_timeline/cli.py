"""
Timeline CLI - Build one artist timeline from the command line.

USAGE:
    python -m artist_timeline --wallet artist.eth --artist "Jane Doe"
    python -m artist_timeline --contracts 0xabc...,0xdef... --chain base

The JSON payload is written to stdout; logs go to stderr.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from .config import TimelineConfig
from .exceptions import InvalidInput, ResolutionFailed, TimelineError
from .models import Chain, TimelineQuery
from .service import TimelineService


logger = logging.getLogger("artist_timeline")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USER_INPUT = 2


def setup_logging(level: str = "INFO", log_format: str = "text") -> logging.Logger:
    """
    Configure root logging for a CLI run.

    Args:
        level: Log level name
        log_format: "text" or "json"

    Returns:
        Package logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logger


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="artist-timeline",
        description="Derive an artist's market milestone timeline from on-chain activity",
    )
    parser.add_argument("--artist", default="Artist", help="Display name for the subject")
    parser.add_argument(
        "--chain",
        default=Chain.ETHEREUM.value,
        help=f"Chain id (e.g. {', '.join(c.value for c in Chain)})",
    )
    parser.add_argument("--wallet", default=None, help="Wallet address or ENS name")
    parser.add_argument(
        "--contracts",
        default=None,
        help="Comma or space separated contract addresses",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    parser.add_argument("--log-format", default="text", choices=["text", "json"])
    parser.add_argument("--indent", type=int, default=2, help="JSON indent (0 for compact)")
    return parser


async def run(query: TimelineQuery, config: TimelineConfig) -> dict:
    """Run one request and return its JSON payload."""
    async with TimelineService(config) as service:
        result = await service.build_timeline(query)
    return result.to_dict()


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = create_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_format)
    load_dotenv()

    indent = args.indent or None
    query = TimelineQuery.from_params({
        "artist": args.artist,
        "chain": args.chain,
        "wallet": args.wallet,
        "contracts": args.contracts,
    })

    try:
        config = TimelineConfig.from_env()
        config.validate()
        payload = asyncio.run(run(query, config))
    except (InvalidInput, ResolutionFailed) as e:
        logger.warning(f"Rejected request: {e}")
        print(json.dumps({"error": e.message}, indent=indent))
        return EXIT_USER_INPUT
    except TimelineError as e:
        logger.error(f"Timeline failed: {e}")
        print(json.dumps({"error": str(e), "details": e.to_dict()}, indent=indent))
        return EXIT_FAILURE

    print(json.dumps(payload, indent=indent))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
