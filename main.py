#!/usr/bin/env python3

import argparse
import asyncio
import json
import time

from pydantic import ValidationError as PydanticValidationError

from config.sync_config import sync_config
from errors.handling import get_user_friendly_error
from log_utils import get_logger, setup_logging
from models.validation import StacksAddress
from node.startup import create_services, shutdown, startup
from sync.round_timer import compute_snapshot, extract_round_timing

logger = get_logger(__name__)


def emit(data):
    print(json.dumps(data, indent=2, default=str))


async def cmd_stories(services, args):
    stories = await services.coordinator.fetch_all_entities()
    if services.coordinator.last_error:
        title, message = get_user_friendly_error(Exception(services.coordinator.last_error))
        emit({"error": title, "message": message})
        return 1
    emit([s.to_dict() for s in stories])
    return 0


async def cmd_story(services, args):
    if args.refresh:
        story = await services.coordinator.refresh_entity(args.story_id)
    else:
        story = await services.coordinator.fetch_entity(args.story_id)
    if story is None:
        emit({"error": "Not Found", "message": f"Story {args.story_id} is not available"})
        return 1
    emit(story.to_dict())
    return 0


async def cmd_round(services, args):
    result = await services.coordinator.fetch_current_round(args.story_id, args.round_num)
    if result is None:
        emit({"error": "Not Found", "message": f"Round {args.round_num} of story {args.story_id} is not available"})
        return 1
    emit({
        "round": result["round"].to_dict(),
        "submissions": [s.to_dict() for s in result["submissions"]],
    })
    return 0


async def cmd_timer(services, args):
    story = await services.coordinator.fetch_entity(args.story_id)
    if story is None:
        emit({"error": "Not Found", "message": f"Story {args.story_id} is not available"})
        return 1
    result = await services.coordinator.fetch_current_round(args.story_id, story.current_round)
    round_data = result["round"].to_dict() if result else {}
    timing = extract_round_timing(
        round_data,
        {
            "current_round": story.current_round,
            "total_blocks": story.total_blocks,
            "voting_window": story.voting_window_hours * 3600,
        },
    )
    emit(compute_snapshot(time.time(), **timing).to_dict())
    return 0


async def cmd_user(services, args):
    try:
        address = StacksAddress(address=args.address).address
    except PydanticValidationError as e:
        emit({"error": "Invalid Address", "message": e.errors()[0]["msg"]})
        return 2
    user = await services.coordinator.fetch_user(address)
    if user is None:
        emit({"error": "Not Found", "message": f"No registered user at {address}"})
        return 1
    emit(user.to_dict())
    return 0


async def cmd_transactions(services, args):
    txs = services.tracker.pending() if args.pending else services.tracker.all()
    emit([t.to_dict() for t in txs])
    return 0


async def cmd_confirm(services, args):
    emit(await services.writer.confirm_pending())
    return 0


async def cmd_prune(services, args):
    removed = await services.tracker.prune(args.days)
    emit({"removed": removed})
    return 0


async def cmd_clear_cache(services, args):
    removed = await services.cache.clear_all()
    emit({"removed": removed})
    return 0


async def cmd_watch(services, args):
    services.polling.interval = args.interval
    services.polling.start()
    logger.info(f"Watching ledger every {args.interval}s")
    try:
        if args.duration:
            await asyncio.sleep(args.duration)
        else:
            while True:
                await asyncio.sleep(3600)
    finally:
        services.polling.stop()
    return 0


async def cmd_status(services, args):
    await services.health.get_health_status(include_network=not args.offline)
    summary = services.health.get_health_summary()
    summary["rate_limiter"] = services.rate_limiter.get_status()
    summary["config"] = services.config.to_dict()
    emit(summary)
    return 0


COMMANDS = {
    "stories": cmd_stories,
    "story": cmd_story,
    "round": cmd_round,
    "timer": cmd_timer,
    "user": cmd_user,
    "transactions": cmd_transactions,
    "confirm": cmd_confirm,
    "prune": cmd_prune,
    "clear-cache": cmd_clear_cache,
    "watch": cmd_watch,
    "status": cmd_status,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Sonichain ledger sync')
    parser.add_argument('--log-level', type=str, default='INFO',
                        help='Log level (default: INFO)')
    parser.add_argument('--log-file', type=str, default=None,
                        help='Also write structured logs to this file')
    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('stories', help='Fetch every story summary')

    p = sub.add_parser('story', help='Fetch one story with its blocks')
    p.add_argument('story_id', type=int)
    p.add_argument('--refresh', action='store_true', help='Bypass the cache')

    p = sub.add_parser('round', help='Fetch a round and its submissions')
    p.add_argument('story_id', type=int)
    p.add_argument('round_num', type=int)

    p = sub.add_parser('timer', help='Countdown for the current round of a story')
    p.add_argument('story_id', type=int)

    p = sub.add_parser('user', help='Fetch a registered user')
    p.add_argument('address', type=str)

    p = sub.add_parser('transactions', help='List tracked transactions')
    p.add_argument('--pending', action='store_true', help='Only pending transactions')

    sub.add_parser('confirm', help='Check pending transactions once')

    p = sub.add_parser('prune', help='Drop old tracked transactions')
    p.add_argument('--days', type=float, default=sync_config.TX_RETENTION_DAYS,
                   help=f'Age cutoff in days (default: {sync_config.TX_RETENTION_DAYS})')

    sub.add_parser('clear-cache', help='Remove every cached ledger read')

    p = sub.add_parser('watch', help='Poll the ledger in the foreground')
    p.add_argument('--interval', type=float, default=sync_config.POLL_INTERVAL,
                   help=f'Seconds between refreshes (default: {sync_config.POLL_INTERVAL})')
    p.add_argument('--duration', type=float, default=None,
                   help='Stop after this many seconds')

    p = sub.add_parser('status', help='Health and rate-limit status')
    p.add_argument('--offline', action='store_true', help='Skip the ledger API check')

    return parser


async def main(args) -> int:
    services = create_services(sync_config)
    try:
        await startup(services)
        return await COMMANDS[args.command](services, args)
    except Exception as e:
        title, message = get_user_friendly_error(e)
        logger.error(f"{title}: {message}")
        emit({"error": title, "message": message})
        return 1
    finally:
        await shutdown(services)


def cli():
    args = build_parser().parse_args()

    setup_logging(
        level=args.log_level,
        log_file=args.log_file,
        enable_console=True,
        enable_structured=True
    )

    try:
        raise SystemExit(asyncio.run(main(args)))
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down")


if __name__ == "__main__":
    cli()
