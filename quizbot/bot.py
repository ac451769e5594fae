"""Main entry point for the Daily Quiz bot."""
import asyncio
import logging
import sys

from aiogram import Bot, Dispatcher
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.types import BotCommand

from quizbot.config import settings
from quizbot.db.database import close_db, init_db
from quizbot.handlers import history, quiz, results, start
from quizbot.services.quiz_session import registry
from quizbot.trivia.client import trivia_client


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)


async def main():
    """Main function to start the bot."""
    if not settings.BOT_TOKEN:
        logger.error("BOT_TOKEN is not set. Create a .env file with BOT_TOKEN=...")
        sys.exit(1)

    logger.info("Initializing database at %s", settings.DATABASE_PATH)
    await init_db(settings.DATABASE_PATH)

    bot = Bot(token=settings.BOT_TOKEN)
    dp = Dispatcher(storage=MemoryStorage())

    dp.include_router(start.router)
    dp.include_router(quiz.router)
    dp.include_router(results.router)
    dp.include_router(history.router)

    await bot.set_my_commands([
        BotCommand(command="start", description="Главное меню"),
    ])

    try:
        logger.info("Starting bot polling...")
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        await registry.close_all()
        await trivia_client.close()
        await bot.session.close()
        await close_db()
        logger.info("Bot stopped")


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user")


if __name__ == "__main__":
    run()
