"""Run the token janitor against the configured database.

Standalone entry point for deployments that do not host the janitor inside
an application process.

Usage:
    cd backend && python -m scripts.run_janitor --once
    cd backend && python -m scripts.run_janitor            # loop until Ctrl-C
"""

import argparse
import asyncio
import logging

from account_tokens.core.config import settings
from account_tokens.core.database import build_engine, build_session_factory
from account_tokens.services.janitor import Janitor

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line options."""
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--once",
        action="store_true",
        help="run a single sweep and exit",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="seconds between sweeps (default: JANITOR_INTERVAL_SECONDS)",
    )
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> None:
    """CLI entry point: sweep once, or keep sweeping until cancelled."""
    args = parse_args(argv)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = build_engine()
    janitor = Janitor(build_session_factory(engine), interval_seconds=args.interval)

    try:
        if args.once:
            result = await janitor.run_once()
            logger.info(
                "Sweep finished: %d rows deleted (%s)", result.total_deleted, result
            )
            return

        janitor.start()
        # Runs until the task is cancelled (Ctrl-C cancels asyncio.run's main task)
        await asyncio.Event().wait()
    finally:
        await janitor.stop()
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
