import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy import text

from wagerbook.config import get_database_identity, settings
from wagerbook.data_providers.espn import ESPNClient
from wagerbook.data_providers.jsonodds import JsonOddsClient
from wagerbook.data_providers.odds_api import OddsAPIClient
from wagerbook.database import AsyncSessionLocal
from wagerbook.services.credit_ledger import CreditLedger
from wagerbook.services.identity_resolver import build_resolver
from wagerbook.services.odds_merge import OddsMerger
from wagerbook.tasks.fetch_odds import refresh_odds
from wagerbook.tasks.fetch_results import sync_schedule
from wagerbook.tasks.settle import run_settlement_pipeline
from wagerbook.tasks.weekly_reset import run_weekly_reset

logger = logging.getLogger(__name__)

CRON_DAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

resolver = build_resolver(settings.teams_file)
ledger = CreditLedger(AsyncSessionLocal)
merger = OddsMerger(resolver)
espn_client = ESPNClient()
quote_sources = {
    "jsonodds": JsonOddsClient(),
    "the_odds_api": OddsAPIClient(),
    "espn": espn_client,
}


async def wait_for_required_tables(max_attempts: int = 30, sleep_seconds: int = 2) -> None:
    for attempt in range(1, max_attempts + 1):
        try:
            async with AsyncSessionLocal() as session:
                await session.execute(text("SELECT 1 FROM games LIMIT 1"))
                await session.execute(text("SELECT 1 FROM user_ledgers LIMIT 1"))
            if attempt > 1:
                logger.info("database schema ready after retry: attempts=%s", attempt)
            return
        except Exception:
            if attempt == max_attempts:
                logger.exception("database schema not ready after retries")
                raise
            logger.warning(
                "database schema not ready; waiting before retry: attempt=%s/%s sleep_seconds=%s",
                attempt,
                max_attempts,
                sleep_seconds,
            )
            await asyncio.sleep(sleep_seconds)


async def run_schedule_sync() -> None:
    try:
        counts = await sync_schedule(espn_client, AsyncSessionLocal, resolver, resolver.leagues)
    except Exception:
        logger.exception("schedule sync failed")
        return
    logger.info("schedule sync complete: %s", counts)


async def run_fetch_odds() -> None:
    try:
        summary = await refresh_odds(AsyncSessionLocal, merger, quote_sources, resolver.leagues)
    except Exception:
        logger.exception("odds refresh cycle failed")
        return
    logger.info(
        "odds refresh cycle complete: games_merged=%s quotes_inserted=%s next_sleep_seconds=%s",
        summary["games_merged"],
        summary["quotes_inserted"],
        settings.odds_poll_interval_seconds,
    )


async def run_settlement_pipeline_task() -> None:
    try:
        summary = await run_settlement_pipeline(AsyncSessionLocal, ledger, resolver, espn_client, resolver.leagues)
    except Exception:
        logger.exception("settlement pipeline failed")
        return
    logger.info("settlement pipeline complete: %s", summary)


async def run_weekly_reset_task() -> None:
    try:
        summary = await run_weekly_reset(ledger)
    except Exception:
        logger.exception("weekly reset failed")
        return
    logger.info("weekly reset job complete: %s", summary)


async def main() -> None:
    db_host, db_name = get_database_identity()
    logger.info(
        "worker startup: database_host=%s database_name=%s jsonodds_key_set=%s odds_api_key_set=%s leagues=%s",
        db_host,
        db_name,
        bool(settings.jsonodds_api_key),
        bool(settings.odds_api_key),
        ",".join(resolver.leagues),
    )

    await wait_for_required_tables()
    await run_schedule_sync()
    await run_fetch_odds()

    sched = AsyncIOScheduler(timezone="UTC")
    sched.add_job(run_schedule_sync, "interval", minutes=settings.score_poll_interval_minutes)
    sched.add_job(run_fetch_odds, "interval", seconds=settings.odds_poll_interval_seconds)
    sched.add_job(run_settlement_pipeline_task, "interval", minutes=settings.settlement_interval_minutes)
    sched.add_job(
        run_weekly_reset_task,
        "cron",
        day_of_week=CRON_DAYS[settings.reset_weekday],
        hour=settings.reset_hour,
        minute=settings.reset_minute,
        timezone=settings.reset_timezone,
    )
    sched.start()

    while True:
        await asyncio.sleep(3600)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    asyncio.run(main())
