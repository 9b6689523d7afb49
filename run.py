"""
Mattermost sample bot — production entry point.

Reads config from environment variables (.env file or system env).
"""

import asyncio
import os
import sys
from pathlib import Path

from dotenv import load_dotenv  # pip install python-dotenv
from loguru import logger

# Load .env from current directory or parent
load_dotenv()


async def main() -> int:
    from samplebot import Bot, BotConfig

    try:
        config = BotConfig.from_env()
    except ValueError as exc:
        print(f"ERROR: {exc}")
        return 2

    logger.info(f"Server: {config.server_url} (team={config.team_name!r})")
    return await Bot(config).run()


if __name__ == "__main__":
    # Configure loguru
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
        level=os.getenv("LOG_LEVEL", "INFO"),
    )
    logger.add(
        Path(os.getenv("SAMPLEBOT_LOG_FILE", "~/.samplebot/samplebot.log")).expanduser(),
        rotation="10 MB",
        retention="7 days",
        level="DEBUG",
    )

    sys.exit(asyncio.run(main()))
