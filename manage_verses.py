"""
Operator commands for the verse store and counseling state.

Usage:
    python manage_verses.py seed            # replace verses with the built-in set, then embed
    python manage_verses.py embed           # embed verses that have no embedding yet
    python manage_verses.py clear           # delete every stored verse
    python manage_verses.py purge-sessions  # drop counseling state past the retention window
    python manage_verses.py db-check        # round-trip a chat session row
"""
import argparse
import asyncio
import logging
import sys
from datetime import timedelta

from sqlalchemy import delete, select

from app.config import settings
from app.database import AsyncSessionLocal, close_db, init_db
from app.models.database_models import ChatSession, utcnow
from app.services.counseling_store import DatabaseCounselingStore
from app.services.embedding import OpenAIEmbeddingService, VerseSearchService
from app.services.verse_seed import clear_verses, seed_verses

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("manage_verses")


async def cmd_embed() -> int:
    if not settings.has_openai_key:
        logger.warning("OPENAI_API_KEY is not set; skipping embeddings")
        return 0
    async with AsyncSessionLocal() as db:
        search = VerseSearchService(db, OpenAIEmbeddingService(settings))
        embedded, pending = await search.embed_missing_verses()
    logger.info("Embedded %d of %d pending verses", embedded, pending)
    return 0 if embedded == pending else 1


async def cmd_seed() -> int:
    async with AsyncSessionLocal() as db:
        count = await seed_verses(db, settings.DEFAULT_TRANSLATION)
    logger.info("Inserted %d verses", count)
    return await cmd_embed()


async def cmd_clear() -> int:
    async with AsyncSessionLocal() as db:
        removed = await clear_verses(db)
    logger.info("Removed %d verses", removed)
    return 0


async def cmd_purge_sessions() -> int:
    async with AsyncSessionLocal() as db:
        purged = await DatabaseCounselingStore(db).purge_expired(
            timedelta(hours=settings.COUNSELING_RETENTION_HOURS)
        )
    logger.info("Purged %d counseling session(s)", purged)
    return 0


async def cmd_db_check() -> int:
    session_id = f"db-check-{int(utcnow().timestamp() * 1000)}"
    async with AsyncSessionLocal() as db:
        db.add(ChatSession(session_id=session_id))
        await db.commit()
        found = (
            await db.execute(select(ChatSession).where(ChatSession.session_id == session_id))
        ).scalar_one_or_none()
        await db.execute(delete(ChatSession).where(ChatSession.session_id == session_id))
        await db.commit()
    logger.info("db ok: %s", found is not None)
    return 0 if found is not None else 1


COMMANDS = {
    "seed": cmd_seed,
    "embed": cmd_embed,
    "clear": cmd_clear,
    "purge-sessions": cmd_purge_sessions,
    "db-check": cmd_db_check,
}


async def main(command: str) -> int:
    await init_db()
    try:
        return await COMMANDS[command]()
    finally:
        await close_db()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Manage the verse store and counseling state.")
    parser.add_argument("command", choices=sorted(COMMANDS))
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.command)))
