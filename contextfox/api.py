"""
ContextFox HTTP API
FastAPI surface over the story processor: content upload, processing runs,
the permission gate, card exclusion toggles and manual task retries.
"""

import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .config import AppConfig, ProcessorSettings, create_default_config_from_env
from .core.errors import (
    InvalidTaskTransitionError,
    ResumeNotAllowedError,
    TaskNotFoundError,
    TransportError,
)
from .core.processor import StoryProcessor
from .models import ExclusionState, ProcessingOutcome, ProcessingState, StoryCard, StoryContent, Task
from .services import (
    CompletionClient,
    InMemoryStateStore,
    OpenRouterClient,
    RedisStateStore,
    StateStore,
    fetch_model_catalog,
)

logger = logging.getLogger(__name__)


class ProcessorRegistry:
    """One processor per story id, sharing a store and a completion client."""

    def __init__(
        self,
        config: AppConfig,
        store: StateStore,
        client: Optional[CompletionClient],
        settings: Optional[ProcessorSettings] = None,
    ):
        self.config = config
        self.store = store
        self.client = client
        self.settings = settings
        self._processors: Dict[str, StoryProcessor] = {}

    def get(self, story_id: str) -> StoryProcessor:
        if self.client is None:
            raise HTTPException(status_code=503, detail="OPENROUTER_API_KEY is not configured")
        if story_id not in self._processors:
            self._processors[story_id] = StoryProcessor(story_id, self.client, self.store, settings=self.settings)
        return self._processors[story_id]

    def existing(self, story_id: str) -> StoryProcessor:
        if story_id not in self._processors:
            raise HTTPException(status_code=404, detail=f"No processing run for story {story_id}")
        return self._processors[story_id]

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
        if isinstance(self.store, RedisStateStore):
            await self.store.disconnect()


_registry: Optional[ProcessorRegistry] = None


async def get_registry() -> ProcessorRegistry:
    global _registry
    if _registry is None:
        config = create_default_config_from_env()
        store: StateStore
        if config.redis_url:
            store = RedisStateStore(config.redis_url)
            await store.connect()
        else:
            store = InMemoryStateStore()
        if await store.get_settings() is None:
            await store.save_settings(config.processor)
        client = None
        if config.openrouter is not None:
            client = OpenRouterClient(config.openrouter, config.processor.sampling)
        _registry = ProcessorRegistry(config, store, client)
    return _registry


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    global _registry
    logger.info("Starting ContextFox API...")
    yield
    if _registry is not None:
        await _registry.close()
        _registry = None
    logger.info("Shutting down ContextFox API...")


app = FastAPI(
    title="ContextFox API",
    description="Incremental story metadata extraction",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================================================
# Request Models
# ============================================================================

class ContentRequest(BaseModel):
    text: Optional[str] = None
    parts: Optional[Dict[int, str]] = None
    context_lengths: Optional[Dict[str, int]] = None


class ContentResponse(BaseModel):
    total_parts: int
    split_message: Optional[str] = None


class ProcessRequest(BaseModel):
    initial_cards: Optional[List[StoryCard]] = None


class ToggleRequest(BaseModel):
    title: str


class RetryRequest(BaseModel):
    system_prompt: Optional[str] = None


# ============================================================================
# Routes
# ============================================================================

@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


@app.get("/api/models")
async def list_models(registry: ProcessorRegistry = Depends(get_registry)):
    openrouter = registry.config.openrouter
    if openrouter is None:
        raise HTTPException(status_code=503, detail="OPENROUTER_API_KEY is not configured")
    try:
        catalog = await fetch_model_catalog(openrouter.api_key.get_secret_value(), openrouter.base_url)
    except TransportError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"models": catalog.models, "context_lengths": catalog.context_lengths}


@app.post("/api/stories/{story_id}/content", response_model=ContentResponse)
async def upload_content(story_id: str, request: ContentRequest, registry: ProcessorRegistry = Depends(get_registry)):
    if (request.text is None) == (request.parts is None):
        raise HTTPException(status_code=422, detail="Provide exactly one of 'text' or 'parts'")
    if request.parts is not None and sorted(request.parts) != list(range(1, len(request.parts) + 1)):
        raise HTTPException(status_code=422, detail="Parts must be numbered 1..N")

    processor = registry.get(story_id)
    content = StoryContent(text=request.text, parts=request.parts)
    message = await processor.load_content(content, request.context_lengths)
    stored = await registry.store.get_content(story_id)
    return ContentResponse(total_parts=stored.total_parts, split_message=message)


@app.post("/api/stories/{story_id}/process", response_model=ProcessingOutcome)
async def process_story(
    story_id: str,
    request: Optional[ProcessRequest] = None,
    registry: ProcessorRegistry = Depends(get_registry),
):
    processor = registry.get(story_id)
    initial_cards = request.initial_cards if request else None
    return await processor.process(initial_cards=initial_cards)


@app.post("/api/stories/{story_id}/resume", response_model=ProcessingOutcome)
async def resume_story(story_id: str, registry: ProcessorRegistry = Depends(get_registry)):
    processor = registry.existing(story_id)
    try:
        return await processor.resume()
    except ResumeNotAllowedError as e:
        raise HTTPException(status_code=409, detail=str(e))


@app.get("/api/stories/{story_id}/state", response_model=ProcessingState)
async def get_state(story_id: str, registry: ProcessorRegistry = Depends(get_registry)):
    state = await registry.store.get_state(story_id)
    if state is None:
        raise HTTPException(status_code=404, detail=f"No state for story {story_id}")
    return state


@app.patch("/api/stories/{story_id}/exclusions", response_model=ExclusionState)
async def toggle_exclusion(story_id: str, request: ToggleRequest, registry: ProcessorRegistry = Depends(get_registry)):
    processor = registry.get(story_id)
    try:
        return await processor.toggle_card(request.title)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Card not found: {request.title}")


@app.get("/api/stories/{story_id}/tasks", response_model=List[Task])
async def list_tasks(story_id: str, registry: ProcessorRegistry = Depends(get_registry)):
    return registry.existing(story_id).board.tasks()


@app.post("/api/stories/{story_id}/tasks/{task_id}/retry", response_model=Task)
async def retry_task(
    story_id: str,
    task_id: str,
    request: Optional[RetryRequest] = None,
    registry: ProcessorRegistry = Depends(get_registry),
):
    processor = registry.existing(story_id)
    try:
        return await processor.retry_task(task_id, request.system_prompt if request else None)
    except TaskNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidTaskTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
