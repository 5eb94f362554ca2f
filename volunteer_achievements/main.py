"""Command-line entry point: evaluate and award achievements"""
import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from volunteer_achievements.config import LOG_LEVEL, validate_config
from volunteer_achievements.db.connection import db
from volunteer_achievements.engine import AchievementEvaluationService
from volunteer_achievements.exceptions import AchievementEngineError, ConfigurationError

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="evaluate-achievements",
        description="Evaluate and award achievements to volunteers based on their activity"
    )
    parser.add_argument("--user-id", type=int, help="Evaluate for a specific user ID")
    parser.add_argument("--achievement-id", type=int, help="Evaluate a specific achievement ID")
    parser.add_argument("--batch-size", type=int, default=None, help="Batch size for processing users")
    args = parser.parse_args(argv)

    if args.batch_size is not None and args.batch_size < 1:
        parser.error("--batch-size must be positive")

    return args


async def run(args: argparse.Namespace, service: Optional[AchievementEvaluationService] = None) -> int:
    """Run one evaluation; returns the process exit code"""
    service = service or AchievementEvaluationService()

    try:
        logger.info("Starting achievement evaluation...")

        if args.user_id:
            logger.info(f"Evaluating achievements for user {args.user_id}")
            result = await service.evaluate_for_user(args.user_id, args.achievement_id)
            logger.info(f"User {args.user_id}: {result.awarded} awarded, {result.updated} updated")
            return 0

        summary = await service.evaluate_all_users(args.achievement_id, args.batch_size)
        return 1 if summary.failed else 0

    except AchievementEngineError as e:
        logger.error(f"Achievement evaluation failed: {e.message}")
        return 1


async def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main application entry point"""
    args = parse_args(argv)

    logger.info("Validating configuration...")
    try:
        validate_config()
    except ConfigurationError:
        return 1

    logger.info("Initializing database connection pool...")
    await db.init_pool()
    try:
        return await run(args)
    finally:
        await db.close_pool()


def cli() -> None:
    # Configure logging
    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO)
    )
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
