#state.py
"""
Local observable state: the story chains mirrored from the ledger
"""

import json
import logging
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional, Union

from config.config import APP_STATE_KEY
from database.database import BlobStore
from events.event_bus import EventTypes
from models.records import StoryChain

logger = logging.getLogger(__name__)

Listener = Callable[[str, StoryChain], None]


class AppStateStore:
    """Ordered mapping of story id to StoryChain with change listeners"""

    def __init__(self, store: Optional[BlobStore] = None, event_bus=None, key: str = APP_STATE_KEY):
        self.store = store
        self.event_bus = event_bus
        self.key = key
        self.story_chains: "OrderedDict[str, StoryChain]" = OrderedDict()
        self.listeners: List[Listener] = []

    def subscribe(self, listener: Listener):
        self.listeners.append(listener)

    def unsubscribe(self, listener: Listener):
        if listener in self.listeners:
            self.listeners.remove(listener)

    def _notify(self, story_id: str, story: StoryChain):
        for listener in list(self.listeners):
            try:
                listener(story_id, story)
            except Exception as e:
                logger.error(f"State listener failed for story {story_id}: {e}")

    async def update_story_chain(self, story_id, update: Union[StoryChain, Dict[str, Any]]) -> StoryChain:
        """Merge ``update`` into the stored story, inserting it when absent"""
        story_id = str(story_id)
        if isinstance(update, StoryChain):
            update = update.to_dict()

        existing = self.story_chains.get(story_id)
        if existing is not None:
            merged = {**existing.to_dict(), **update}
        else:
            merged = {"title": f"Story {story_id}", **update}
        merged["id"] = story_id

        story = StoryChain.from_dict(merged)
        self.story_chains[story_id] = story
        self._notify(story_id, story)

        if self.event_bus is not None:
            await self.event_bus.emit(
                EventTypes.STORY_UPDATED,
                {"story_id": story_id, "title": story.title},
                source="state",
            )
        return story

    def set_story_chains(self, stories: List[StoryChain]):
        self.story_chains = OrderedDict((s.id, s) for s in stories)
        for story in stories:
            self._notify(story.id, story)

    def get_story(self, story_id) -> Optional[StoryChain]:
        return self.story_chains.get(str(story_id))

    def stories(self) -> List[StoryChain]:
        return list(self.story_chains.values())

    async def save(self):
        if self.store is None:
            return
        try:
            raw = json.dumps({"story_chains": [s.to_dict() for s in self.story_chains.values()]})
            await self.store.set_item(self.key, raw)
            logger.info(f"Saved {len(self.story_chains)} stories to local state")
        except Exception as e:
            logger.error(f"Failed to save app state: {e}")

    async def load(self):
        if self.store is None:
            return
        try:
            raw = await self.store.get_item(self.key)
            if not raw:
                return
            data = json.loads(raw)
            self.story_chains = OrderedDict(
                (s["id"], StoryChain.from_dict(s)) for s in data.get("story_chains", [])
            )
            logger.info(f"Loaded {len(self.story_chains)} stories from local state")
        except Exception as e:
            logger.error(f"Failed to load app state: {e}")
