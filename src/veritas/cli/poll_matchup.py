"""Poll live scores for a matchup until it is finalized."""

import argparse
import datetime
import logging
from collections.abc import Sequence

from dotenv import load_dotenv

from veritas.classes.distribution import Distribution, Slot
from veritas.classes.matchupdatabase import MatchupDatabase
from veritas.classes.sleeper import SleeperClient
from veritas.config import Settings, load_settings
from veritas.logging import configure_logging
from veritas.services.live_scoring import TICK_FAILED, TICK_FINALIZED, LiveScorePoller
from veritas.services.matchup_service import MatchupService

logger = logging.getLogger(__name__)


def set_quiet_verbosity() -> None:
    """Set logger verbosity to WARNING level."""
    logging.getLogger("veritas").setLevel(logging.WARNING)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("matchup_id", type=int, help="Matchup to poll")
    parser.add_argument("--once", action="store_true", help="Run a single polling step and exit")
    parser.add_argument("--interval", type=float, help="Seconds between polls (default from config)")
    parser.add_argument("--db", help="Path to the sqlite database (default from config)")
    parser.add_argument("-q", "--quiet", action="store_true", help="Decrease verbosity")
    return parser.parse_args(argv)


def _slot_text(slot: Slot) -> str:
    if slot.empty:
        return "-"
    marker = " *" if slot.conflict else ""
    return f"{slot.player.full_name} (#{slot.rank}) {slot.live:.1f}{marker}"


def format_lineup_table(lineups: Distribution) -> str:
    """Render both lineups side by side; '*' marks a slot filled after a burned pick."""
    rows = [f"{'POS':<10}{'SIDE A':<36}{'SIDE B':<36}"]
    for slot_a, slot_b in zip(lineups.slots_a, lineups.slots_b):
        rows.append(f"{slot_a.category:<10}{_slot_text(slot_a):<36}{_slot_text(slot_b):<36}")
    rows.append(f"{'TOTAL':<10}{lineups.total_a:<36.2f}{lineups.total_b:<36.2f}")
    if lineups.burned:
        rows.append("burned: " + ", ".join(lineups.burned))
    return "\n".join(rows)


def build_poller(settings: Settings, db: MatchupDatabase, matchup_id: int, interval: float | None) -> LiveScorePoller:
    client = SleeperClient(
        timeout_sec=settings.request_timeout_sec,
        base_url=settings.sleeper_base_url,
        schedule_base_url=settings.schedule_base_url,
    )
    return LiveScorePoller(
        MatchupService(db),
        client,
        matchup_id,
        interval_sec=interval or settings.poll_interval_sec,
        batch_size=settings.stats_batch_size,
        lead=datetime.timedelta(hours=settings.poll_lead_hours),
        tail=datetime.timedelta(hours=settings.poll_tail_hours),
    )


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    configure_logging()
    args = parse_args(argv)
    if args.quiet:
        set_quiet_verbosity()

    settings = load_settings()
    db = MatchupDatabase(args.db or settings.resolved_db_path())
    try:
        db.create_tables()
        poller = build_poller(settings, db, args.matchup_id, args.interval)
        if args.once:
            action = poller.tick()
            logger.info("matchup %s: %s", args.matchup_id, action)
            if poller.latest is not None:
                print(format_lineup_table(poller.latest))
            return 1 if action == TICK_FAILED else 0

        poller.start()
        try:
            poller.join()
        except KeyboardInterrupt:
            logger.info("interrupted, cancelling poller")
            poller.cancel()
            poller.join()
        if poller.latest is not None:
            print(format_lineup_table(poller.latest))
        if poller.last_action != TICK_FINALIZED:
            logger.error("matchup %s: polling ended without finalizing (%s)", args.matchup_id, poller.last_action)
            return 1
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
