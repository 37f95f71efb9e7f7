"""
Model Catalog - OpenRouter Model Listing
Lists text-output models with their context window lengths, used to decide
whether story content must be pre-split.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from ..core.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass
class ModelCatalog:
    models: List[str] = field(default_factory=list)
    context_lengths: Dict[str, int] = field(default_factory=dict)

    def context_length(self, model: str) -> int:
        return self.context_lengths.get(model, 0)


def _outputs_text_only(model: Dict[str, Any]) -> bool:
    arch = model.get("architecture")
    if not arch:
        return True
    if arch.get("output_modalities"):
        modalities = arch["output_modalities"]
        return "text" in modalities and "image" not in modalities
    if arch.get("modality"):
        # e.g. "text+image->text"
        return "text" in arch["modality"] and "image" not in arch["modality"]
    return True


def build_catalog(payload: Dict[str, Any]) -> ModelCatalog:
    catalog = ModelCatalog()
    for model in payload.get("data", []):
        if not _outputs_text_only(model):
            continue
        model_id = model["id"]
        top_provider = model.get("top_provider") or {}
        catalog.context_lengths[model_id] = top_provider.get("context_length") or model.get("context_length") or 0
        catalog.models.append(model_id)
    catalog.models.sort()
    return catalog


async def fetch_model_catalog(
    api_key: str,
    base_url: str = "https://openrouter.ai/api/v1",
    http_client: Optional[httpx.AsyncClient] = None,
) -> ModelCatalog:
    """GET {base_url}/models and keep text-output models."""
    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(timeout=30.0)
    try:
        response = await client.get(
            f"{base_url.rstrip('/')}/models",
            headers={"Authorization": f"Bearer {api_key}"},
        )
        response.raise_for_status()
        catalog = build_catalog(response.json())
    except httpx.HTTPStatusError as e:
        raise TransportError(f"Failed to fetch models: {e.response.status_code}", status_code=e.response.status_code) from e
    except httpx.HTTPError as e:
        raise TransportError(f"Failed to fetch models: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    logger.info(f"[fetch_model_catalog] Loaded {len(catalog.models)} models")
    return catalog
