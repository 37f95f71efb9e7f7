"""
ContextFox Services Module
Completion client, model catalog, persistence and file loading.
"""

from .completion_client import CompletionClient, CompletionResponse, OpenRouterClient, build_request
from .file_content import dump_cards, load_cards_file, load_story_file, load_zip_parts
from .model_catalog import ModelCatalog, build_catalog, fetch_model_catalog
from .state_store import InMemoryStateStore, RedisStateStore, StateStore

__all__ = [
    "CompletionClient",
    "CompletionResponse",
    "OpenRouterClient",
    "build_request",
    "ModelCatalog",
    "build_catalog",
    "fetch_model_catalog",
    "StateStore",
    "InMemoryStateStore",
    "RedisStateStore",
    "load_story_file",
    "load_zip_parts",
    "load_cards_file",
    "dump_cards",
]
