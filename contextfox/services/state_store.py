"""
State Store - Per-Story Persistence
Durable get/set storage for processing state, story content and the global
processor settings. The processor only relies on these operations, not on a
particular engine.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

import redis.asyncio as redis

from ..config import ProcessorSettings
from ..models import ProcessingState, StoryContent

logger = logging.getLogger(__name__)


class StateStore(ABC):
    """Abstract persistence collaborator."""

    @abstractmethod
    async def get_state(self, story_id: str) -> Optional[ProcessingState]:
        pass

    @abstractmethod
    async def save_state(self, story_id: str, state: ProcessingState) -> None:
        pass

    @abstractmethod
    async def delete_state(self, story_id: str) -> None:
        pass

    @abstractmethod
    async def get_content(self, story_id: str) -> Optional[StoryContent]:
        pass

    @abstractmethod
    async def save_content(self, story_id: str, content: StoryContent) -> None:
        pass

    @abstractmethod
    async def get_settings(self) -> Optional[ProcessorSettings]:
        pass

    @abstractmethod
    async def save_settings(self, settings: ProcessorSettings) -> None:
        pass


class InMemoryStateStore(StateStore):
    """Process-local store, used by the CLI and tests."""

    def __init__(self):
        self._states: Dict[str, str] = {}
        self._contents: Dict[str, str] = {}
        self._settings: Optional[str] = None

    # Values are kept serialized so callers never share mutable objects
    async def get_state(self, story_id: str) -> Optional[ProcessingState]:
        raw = self._states.get(story_id)
        return ProcessingState.model_validate_json(raw) if raw else None

    async def save_state(self, story_id: str, state: ProcessingState) -> None:
        self._states[story_id] = state.model_dump_json()

    async def delete_state(self, story_id: str) -> None:
        self._states.pop(story_id, None)
        self._contents.pop(story_id, None)

    async def get_content(self, story_id: str) -> Optional[StoryContent]:
        raw = self._contents.get(story_id)
        return StoryContent.model_validate_json(raw) if raw else None

    async def save_content(self, story_id: str, content: StoryContent) -> None:
        self._contents[story_id] = content.model_dump_json()

    async def get_settings(self) -> Optional[ProcessorSettings]:
        return ProcessorSettings.model_validate_json(self._settings) if self._settings else None

    async def save_settings(self, settings: ProcessorSettings) -> None:
        self._settings = settings.model_dump_json()


class RedisStateStore(StateStore):
    """Redis-backed store (JSON documents under contextfox:* keys)."""

    KEY_STORY = "contextfox:story:{story_id}"
    KEY_CONTENT = "contextfox:content:{story_id}"
    KEY_SETTINGS = "contextfox:settings"

    def __init__(self, redis_url: str = "redis://localhost:6379"):
        self.redis_url = redis_url
        self._client: Optional[redis.Redis] = None

    async def connect(self) -> None:
        """Establish connection to Redis."""
        self._client = redis.from_url(self.redis_url, decode_responses=True)
        await self._client.ping()
        logger.info(f"[RedisStateStore.connect] Connected to {self.redis_url}")

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.close()
            self._client = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise RuntimeError("Redis client not connected. Call connect() first.")
        return self._client

    async def get_state(self, story_id: str) -> Optional[ProcessingState]:
        raw = await self.client.get(self.KEY_STORY.format(story_id=story_id))
        return ProcessingState.model_validate_json(raw) if raw else None

    async def save_state(self, story_id: str, state: ProcessingState) -> None:
        await self.client.set(self.KEY_STORY.format(story_id=story_id), state.model_dump_json())

    async def delete_state(self, story_id: str) -> None:
        await self.client.delete(
            self.KEY_STORY.format(story_id=story_id),
            self.KEY_CONTENT.format(story_id=story_id),
        )

    async def get_content(self, story_id: str) -> Optional[StoryContent]:
        raw = await self.client.get(self.KEY_CONTENT.format(story_id=story_id))
        return StoryContent.model_validate_json(raw) if raw else None

    async def save_content(self, story_id: str, content: StoryContent) -> None:
        await self.client.set(self.KEY_CONTENT.format(story_id=story_id), content.model_dump_json())

    async def get_settings(self) -> Optional[ProcessorSettings]:
        raw = await self.client.get(self.KEY_SETTINGS)
        return ProcessorSettings.model_validate_json(raw) if raw else None

    async def save_settings(self, settings: ProcessorSettings) -> None:
        await self.client.set(self.KEY_SETTINGS, settings.model_dump_json())
