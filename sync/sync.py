"""
Ledger-to-local synchronization of stories, rounds and users.

Reads go cache-first through ``TTLCache``; misses are served by the
rate-limited ``ReadCallClient`` and normalized into application records.
Fresh reads are written through to the ``AppStateStore``.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

from blockchain.clarity import principal_cv, uint_cv
from blockchain.converters import convert_round, convert_story, convert_submission, convert_user
from blockchain.normalizer import normalize, to_int
from cache.ttl_cache import DEFAULT_TTL, SOURCE_FETCHED, CacheKeys, TTLCache
from config.config import (
    FIRST_STORY_ID,
    FN_GET_ROUND,
    FN_GET_ROUND_SUBMISSIONS,
    FN_GET_STORY,
    FN_GET_STORY_BLOCK,
    FN_GET_STORY_COUNTER,
    FN_GET_SUBMISSION,
    FN_GET_USER,
)
from errors.exceptions import ValidationError
from events.event_bus import EventTypes
from log_utils import get_logger, log_performance
from models.records import RoundInfo, StoryChain, UserProfile, VoiceBlock
from monitoring.metrics import entity_fetches_total
from network.read_client import ReadCallClient
from state.state import AppStateStore

logger = get_logger(__name__)


class SyncCoordinator:
    """Cache-first fetching of ledger entities; the entity is a story"""

    def __init__(
        self,
        client: ReadCallClient,
        cache: TTLCache,
        state: Optional[AppStateStore] = None,
        ttl: float = DEFAULT_TTL,
        event_bus=None,
    ):
        self.client = client
        self.cache = cache
        self.state = state
        self.ttl = ttl
        self.event_bus = event_bus
        self.last_error: Optional[str] = None
        self.in_flight: Dict[str, asyncio.Task] = {}

    async def _coalesce(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        """Share one in-flight fetch among concurrent callers for the same key"""
        task = self.in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self.in_flight[key] = task
            task.add_done_callback(lambda _: self.in_flight.pop(key, None))
        else:
            logger.debug(f"Joining in-flight fetch: {key}", extra={"cache_key": key})
        return await asyncio.shield(task)

    async def _write_through(self, story: StoryChain, keep_blocks: bool = False):
        if self.state is None:
            return
        update = story.to_dict()
        if keep_blocks:
            # Summaries carry no blocks; leave the stored chain alone
            update.pop("blocks")
            update.pop("total_duration")
        await self.state.update_story_chain(story.id, update)

    # ────────────────────────────── stories ──────────────────────────────

    async def _fetch_story_summary(self, story_id) -> Optional[StoryChain]:
        raw = await self.client.call(FN_GET_STORY, [uint_cv(int(story_id))])
        if raw is None:
            return None
        record = normalize(raw)
        if not isinstance(record, dict):
            raise ValidationError(f"Unexpected get-story result for story {story_id}: {raw!r}")
        return convert_story(record, story_id)

    async def _fetch_story_blocks(self, story_id, total_blocks: int) -> List[VoiceBlock]:
        blocks = []
        for index in range(total_blocks):
            raw_block = await self.client.call(
                FN_GET_STORY_BLOCK, [uint_cv(int(story_id)), uint_cv(index)]
            )
            if raw_block is None:
                logger.warning(f"Story {story_id} has no block at index {index}")
                continue

            record = normalize(raw_block)
            submission_id = to_int(record.get("submission-id"), -1) if isinstance(record, dict) else -1
            if submission_id < 0:
                logger.warning(f"Block {index} of story {story_id} has no submission id")
                continue

            raw_submission = await self.client.call(FN_GET_SUBMISSION, [uint_cv(submission_id)])
            if raw_submission is None:
                logger.warning(f"Submission {submission_id} not found for story {story_id}")
                continue
            blocks.append(convert_submission(normalize(raw_submission), submission_id))
        await self._resolve_usernames(blocks)
        return blocks

    async def _fetch_and_normalize(self, story_id) -> Optional[StoryChain]:
        """Read a story and its ordered finalized blocks; None when absent"""
        story = await self._fetch_story_summary(story_id)
        if story is None:
            return None
        story.blocks = await self._fetch_story_blocks(story_id, story.total_blocks)
        story.total_duration = sum(b.duration for b in story.blocks)
        return story

    async def _fetch_story_dict(self, story_id) -> Optional[dict]:
        story = await self._fetch_and_normalize(story_id)
        return story.to_dict() if story is not None else None

    async def fetch_entity(self, story_id, use_cache: bool = True) -> Optional[StoryChain]:
        """Return the story with its blocks, or None when absent or unavailable"""
        key = CacheKeys.story(story_id)

        if use_cache:
            result = await self._coalesce(
                key,
                lambda: self.cache.fetch_with_cache_result(
                    key, lambda: self._fetch_story_dict(story_id), self.ttl
                ),
            )
            if not result.ok:
                self.last_error = str(result.error)
                entity_fetches_total.labels(outcome="error").inc()
                return None
            entity_fetches_total.labels(outcome=result.source).inc()
            if result.data is None:
                return None
            story = StoryChain.from_dict(result.data)
            if result.source == SOURCE_FETCHED:
                await self._write_through(story)
            return story

        try:
            story = await self._fetch_and_normalize(story_id)
        except Exception as e:
            self.last_error = str(e)
            entity_fetches_total.labels(outcome="error").inc()
            logger.error(f"Error fetching story {story_id}: {e}", extra={"entity_id": str(story_id)})
            return None

        entity_fetches_total.labels(outcome="fetched").inc()
        if story is not None:
            await self.cache.set(key, story.to_dict(), self.ttl)
            await self._write_through(story)
        return story

    async def refresh_entity(self, story_id) -> Optional[StoryChain]:
        """Drop the cached story and perform exactly one fresh read"""
        await self.cache.invalidate(CacheKeys.story(story_id))
        story = await self.fetch_entity(story_id, use_cache=False)
        if story is not None:
            logger.info(f"Story {story_id} refreshed", extra={"entity_id": str(story_id)})
        return story

    @log_performance(logger, "fetch_all_entities")
    async def fetch_all_entities(self) -> List[StoryChain]:
        """Fetch every story summary; failed stories are logged and omitted"""
        self.last_error = None
        try:
            count = to_int(normalize(await self.client.call(FN_GET_STORY_COUNTER)))
        except Exception as e:
            self.last_error = str(e)
            logger.error(f"Failed to read story counter: {e}")
            return []

        stories = []
        for story_id in range(FIRST_STORY_ID, FIRST_STORY_ID + count):
            try:
                story = await self._fetch_story_summary(story_id)
            except Exception as e:
                entity_fetches_total.labels(outcome="error").inc()
                logger.warning(f"Skipping story {story_id}: {e}", extra={"entity_id": str(story_id)})
                continue
            if story is None:
                logger.debug(f"Story {story_id} not found", extra={"entity_id": str(story_id)})
                continue
            entity_fetches_total.labels(outcome="fetched").inc()
            stories.append(story)

        for story in stories:
            await self._write_through(story, keep_blocks=True)

        if self.event_bus is not None:
            await self.event_bus.emit(EventTypes.STORIES_SYNCED, {"count": len(stories)}, source="sync")

        logger.info(f"Loaded {len(stories)} of {count} stories from the ledger")
        return stories

    # ────────────────────────────── rounds ──────────────────────────────

    async def _fetch_round_dict(self, story_id, round_num: int) -> Optional[dict]:
        args = [uint_cv(int(story_id)), uint_cv(int(round_num))]
        raw_round = await self.client.call(FN_GET_ROUND, args)
        if raw_round is None:
            return None
        round_info = convert_round(normalize(raw_round), story_id, round_num)

        raw_ids = await self.client.call(FN_GET_ROUND_SUBMISSIONS, args)
        submission_ids = normalize(raw_ids) if raw_ids is not None else []
        if not isinstance(submission_ids, list):
            submission_ids = []

        submissions = []
        for raw_id in submission_ids:
            submission_id = to_int(raw_id, -1)
            if submission_id < 0:
                continue
            raw_submission = await self.client.call(FN_GET_SUBMISSION, [uint_cv(submission_id)])
            if raw_submission is not None:
                submissions.append(convert_submission(normalize(raw_submission), submission_id))
        await self._resolve_usernames(submissions)

        return {"round": round_info.to_dict(), "submissions": [s.to_dict() for s in submissions]}

    async def fetch_current_round(self, story_id, round_num: int) -> Optional[Dict[str, Any]]:
        """Round details and its submissions, or None when unavailable"""
        key = CacheKeys.round(story_id, round_num)
        result = await self._coalesce(
            key,
            lambda: self.cache.fetch_with_cache_result(
                key, lambda: self._fetch_round_dict(story_id, round_num), self.ttl
            ),
        )
        if not result.ok:
            self.last_error = str(result.error)
            if "timed out" in self.last_error:
                logger.warning(
                    f"Round {round_num} of story {story_id} timed out: "
                    "the contract may not be deployed or the network is slow"
                )
            return None
        if result.data is None:
            return None
        return {
            "round": RoundInfo.from_dict(result.data["round"]),
            "submissions": [VoiceBlock.from_dict(s) for s in result.data["submissions"]],
        }

    # ────────────────────────────── users ──────────────────────────────

    async def _fetch_user_dict(self, address: str) -> Optional[dict]:
        raw = await self.client.call(FN_GET_USER, [principal_cv(address)])
        if raw is None:
            return None
        user = convert_user(normalize(raw), address)
        return user.to_dict() if user is not None else None

    async def _user_result(self, address: str):
        key = CacheKeys.user(address)
        return await self._coalesce(
            key,
            lambda: self.cache.fetch_with_cache_result(key, lambda: self._fetch_user_dict(address), self.ttl),
        )

    async def _resolve_usernames(self, blocks: List[VoiceBlock]):
        """Show registered usernames; unregistered contributors keep the shortened principal"""
        names: Dict[str, Optional[str]] = {}
        for block in blocks:
            address = block.contributor
            if not address:
                continue
            if address not in names:
                result = await self._user_result(address)
                names[address] = result.data["username"] if result.ok and result.data else None
            if names[address]:
                block.username = names[address]

    async def fetch_user(self, address: str) -> Optional[UserProfile]:
        result = await self._user_result(address)
        if not result.ok:
            self.last_error = str(result.error)
            return None
        return UserProfile.from_dict(result.data) if result.data is not None else None

    async def get_user_stories(self, address: str) -> List[StoryChain]:
        """Stories created by ``address``"""
        if not address:
            return []
        stories = await self.fetch_all_entities()
        return [s for s in stories if s.creator == address]

    async def get_contributed_stories(self, address: str) -> List[StoryChain]:
        """Stories with at least one finalized block contributed by ``address``"""
        if not address:
            return []
        contributed = []
        for summary in await self.fetch_all_entities():
            if summary.total_blocks == 0:
                continue
            story = await self.fetch_entity(summary.id)
            if story is not None and any(b.contributor == address for b in story.blocks):
                contributed.append(story)
        return contributed
