"""
ContextFox Configuration Module
OpenRouter settings, task model presets and processor settings.
"""

from .settings import (
    AID_MODEL_MAPPING,
    DEFAULT_STORY_MODEL,
    DISABLED_MODEL,
    MODEL_PRESETS,
    STAGE_HARD_RULES,
    AppConfig,
    OpenRouterConfig,
    ProcessorSettings,
    PromptConfig,
    SamplingConfig,
    TaskModelConfig,
    create_default_config_from_env,
    get_preset,
    get_underlying_model,
    is_disabled_model,
)

__all__ = [
    "AID_MODEL_MAPPING",
    "DEFAULT_STORY_MODEL",
    "DISABLED_MODEL",
    "MODEL_PRESETS",
    "STAGE_HARD_RULES",
    "AppConfig",
    "OpenRouterConfig",
    "ProcessorSettings",
    "PromptConfig",
    "SamplingConfig",
    "TaskModelConfig",
    "create_default_config_from_env",
    "get_preset",
    "get_underlying_model",
    "is_disabled_model",
]
