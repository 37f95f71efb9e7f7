"""
ContextFox Configuration - OpenRouter, Task Models, Prompts & Sampling
Every stage is routed through OpenRouter; each stage picks its own model.
"""

import os
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator

from ..prompts import DEFAULT_PROMPTS, DEFAULT_REFUSAL_PROMPT, PromptTemplate, find_unknown_placeholders


# Sentinel model id that disables a stage
DISABLED_MODEL = "None"


def is_disabled_model(model: Optional[str]) -> bool:
    """A stage whose model is empty or the literal "None" is skipped."""
    return not model or model.strip().lower() == DISABLED_MODEL.lower()


class OpenRouterConfig(BaseModel):
    """OpenRouter connection settings (OpenAI-compatible endpoint)."""
    api_key: SecretStr
    base_url: str = "https://openrouter.ai/api/v1"
    site_url: Optional[str] = None
    app_name: str = "ContextFox"


# ============================================================================
# Task Models
# ============================================================================

class TaskModelConfig(BaseModel):
    """Model assignment for each pipeline stage."""
    perspective: str = "google/gemini-2.5-flash-lite"
    title: str = "google/gemini-2.5-flash-lite"
    characters: str = "deepseek/deepseek-v3.2-exp"
    locations: str = "deepseek/deepseek-v3.2-exp"
    concepts: str = "deepseek/deepseek-v3.2-exp"
    summary: str = "deepseek/deepseek-v3.2-exp"
    plot_essentials: str = "deepseek/deepseek-v3.2-exp"
    core_self: str = "deepseek/deepseek-v3.1-terminus"

    def is_enabled(self, stage: str) -> bool:
        return not is_disabled_model(getattr(self, stage))

    def assigned_models(self) -> List[str]:
        """Distinct models used by enabled stages, in stage order."""
        models: List[str] = []
        for stage in TaskModelConfig.model_fields:
            model = getattr(self, stage)
            if not is_disabled_model(model) and model not in models:
                models.append(model)
        return models


MODEL_PRESETS: Dict[str, TaskModelConfig] = {
    "cheap": TaskModelConfig(
        characters="deepseek/deepseek-v3.1-terminus",
        locations="deepseek/deepseek-v3.1-terminus",
        concepts="deepseek/deepseek-v3.1-terminus",
        summary="deepseek/deepseek-v3.1-terminus",
        plot_essentials="deepseek/deepseek-v3.1-terminus",
        core_self="deepseek/deepseek-v3.1-terminus",
    ),
    "default": TaskModelConfig(),
    "expensive": TaskModelConfig(
        characters="google/gemini-3-flash-preview",
        locations="google/gemini-3-flash-preview",
        concepts="google/gemini-2.5-flash",
        summary="google/gemini-3-pro-preview",
        plot_essentials="google/gemini-3-flash-preview",
        core_self="google/gemini-2.5-flash",
    ),
    "very_expensive": TaskModelConfig(
        characters="anthropic/claude-sonnet-4.5",
        locations="google/gemini-3-flash-preview",
        concepts="google/gemini-2.5-flash",
        summary="anthropic/claude-sonnet-4.5",
        plot_essentials="google/gemini-3-pro-preview",
        core_self="google/gemini-2.5-flash",
    ),
}


def get_preset(name: str) -> TaskModelConfig:
    """Return a copy of a named preset."""
    if name not in MODEL_PRESETS:
        raise KeyError(f"Unknown model preset: {name}")
    return MODEL_PRESETS[name].model_copy()


# ============================================================================
# Story Model Mapping
# ============================================================================

DEFAULT_STORY_MODEL = "Raven"

# AI Dungeon model name -> underlying model, substituted for $model in prompts
AID_MODEL_MAPPING: Dict[str, str] = {
    # Very Large Models
    "Raven": "GLM-4.5",
    "Atlas": "DeepSeek-V3.2",
    "DeepSeek": "DeepSeek-V3.2",
    "Hermes 3 405B": "Llama-3.1-405B",
    # Large Models (70B)
    "Nova": "Llama-3.3-70B-Instruct",
    "Wayfarer Large": "Llama-3.3-70B-Instruct",
    "Hermes 3 70B": "Llama-3.1-70B",
    # Medium Models (24B)
    "Hearthfire": "Mistral-Small-24B-Instruct-2501",
    "Harbinger": "Mistral-Small-24B-Instruct-2501",
    # Small Models (12B)
    "Muse": "Mistral-Nemo-Base-2407",
    "Wayfarer Small 2": "Mistral-Nemo-Base-2407",
    "Madness": "Mistral-Nemo-Base-2407",
}


def get_underlying_model(story_model: str) -> str:
    return AID_MODEL_MAPPING.get(story_model, story_model)


# ============================================================================
# Sampling & Prompts
# ============================================================================

class SamplingConfig(BaseModel):
    """Request parameters shared by every completion call."""
    max_tokens: int = Field(default=20000, gt=0)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    top_k: Optional[int] = Field(default=None, ge=0)
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    reasoning_effort: Optional[str] = None  # minimal, low, medium, high


# Stage template -> hard rules suffix
STAGE_HARD_RULES: Dict[str, str] = {
    "perspective": "perspective",
    "title": "title",
    "characters": "cards",
    "locations": "cards",
    "concepts": "cards",
    "summary": "summary",
    "plot_essentials": "plot_essentials",
    "plot_essentials_with_context": "plot_essentials",
    "core_self": "core_self",
}


class PromptConfig(BaseModel):
    """User-editable stage templates plus the refusal bypass addendum."""
    perspective: str = DEFAULT_PROMPTS["perspective"]
    title: str = DEFAULT_PROMPTS["title"]
    characters: str = DEFAULT_PROMPTS["characters"]
    locations: str = DEFAULT_PROMPTS["locations"]
    concepts: str = DEFAULT_PROMPTS["concepts"]
    summary: str = DEFAULT_PROMPTS["summary"]
    plot_essentials: str = DEFAULT_PROMPTS["plot_essentials"]
    plot_essentials_with_context: str = DEFAULT_PROMPTS["plot_essentials_with_context"]
    core_self: str = DEFAULT_PROMPTS["core_self"]
    refusal: str = DEFAULT_REFUSAL_PROMPT

    @field_validator(*STAGE_HARD_RULES.keys())
    @classmethod
    def _check_placeholders(cls, value: str) -> str:
        unknown = find_unknown_placeholders(value)
        if unknown:
            raise ValueError(f"Unknown placeholders: {', '.join(unknown)}")
        return value

    def template(self, stage: str) -> PromptTemplate:
        return PromptTemplate(getattr(self, stage), STAGE_HARD_RULES[stage])


class ProcessorSettings(BaseModel):
    """Global settings for a story processor."""
    story_model: str = DEFAULT_STORY_MODEL
    task_models: TaskModelConfig = Field(default_factory=TaskModelConfig)
    prompts: PromptConfig = Field(default_factory=PromptConfig)
    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    require_permission_between_parts: bool = False
    max_attempts: int = Field(default=2, ge=1)
    retry_delay_seconds: float = Field(default=0.0, ge=0.0)
    context_split_threshold: int = Field(default=150000, gt=0)

    @property
    def underlying_model(self) -> str:
        return get_underlying_model(self.story_model)


class AppConfig(BaseModel):
    """Complete application configuration."""
    openrouter: Optional[OpenRouterConfig] = None
    processor: ProcessorSettings = Field(default_factory=ProcessorSettings)
    redis_url: Optional[str] = None

    def validate_config(self) -> List[str]:
        """Return human-readable configuration problems (empty when usable)."""
        errors = []
        if self.openrouter is None:
            errors.append("openrouter: OPENROUTER_API_KEY is not set")
        elif not self.openrouter.api_key.get_secret_value().strip():
            errors.append("openrouter: API key is empty")

        task_models = self.processor.task_models
        if not task_models.is_enabled("summary"):
            errors.append("summary: a model is required, the summary stage cannot be disabled")
        if not task_models.assigned_models():
            errors.append("task_models: every stage is disabled")
        return errors


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def create_default_config_from_env() -> AppConfig:
    """Create configuration from environment variables."""
    config = AppConfig(redis_url=os.getenv("REDIS_URL"))

    if os.getenv("OPENROUTER_API_KEY"):
        config.openrouter = OpenRouterConfig(
            api_key=SecretStr(os.getenv("OPENROUTER_API_KEY")),
            base_url=os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"),
            site_url=os.getenv("OPENROUTER_SITE_URL"),
        )

    processor = config.processor
    preset = os.getenv("CONTEXTFOX_MODEL_PRESET")
    if preset:
        processor.task_models = get_preset(preset)
    if os.getenv("CONTEXTFOX_STORY_MODEL"):
        processor.story_model = os.getenv("CONTEXTFOX_STORY_MODEL")
    if os.getenv("CONTEXTFOX_MAX_TOKENS"):
        processor.sampling.max_tokens = int(os.getenv("CONTEXTFOX_MAX_TOKENS"))
    processor.require_permission_between_parts = _env_flag("CONTEXTFOX_REQUIRE_PERMISSION")

    return config
