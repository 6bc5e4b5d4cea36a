"""Refresh the NFL player table from Sleeper and the projections feed."""

import argparse
import logging
from collections.abc import Sequence

from dotenv import load_dotenv

from veritas.classes.matchupdatabase import MatchupDatabase
from veritas.classes.sleeper import SleeperClient
from veritas.config import load_settings
from veritas.logging import configure_logging
from veritas.services.player_sync import sync_players

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--db", help="Path to the sqlite database (default from config)")
    parser.add_argument("--projections-url", help="Override the projections endpoint")
    parser.add_argument("--batch-size", type=int, help="Rows per upsert batch")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    configure_logging()
    args = parse_args(argv)

    settings = load_settings()
    client = SleeperClient(timeout_sec=settings.request_timeout_sec, base_url=settings.sleeper_base_url)
    db = MatchupDatabase(args.db or settings.resolved_db_path())
    try:
        db.create_tables()
        outcome = sync_players(
            db,
            client,
            args.projections_url or settings.projections_url,
            batch_size=args.batch_size or settings.stats_batch_size,
        )
    finally:
        db.close()

    if outcome.success:
        logger.info("synced %d players", outcome.count)
        return 0
    logger.error("player sync failed after %d players: %s", outcome.count, outcome.error)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
