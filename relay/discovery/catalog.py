"""
Model Discovery Cache.

Keeps a process-wide catalog of currently usable models per provider:

- OpenRouter: free (zero-priced) models from the public listing, ranked by
  ``score_openrouter_model``.
- Hugging Face: most-downloaded text-generation models merged behind a fixed
  safety list.

Discovery never raises; every failure degrades to the provider's safety list.
Catalogs are immutable snapshots replaced wholesale on refresh, so concurrent
refreshes can overlap safely (last writer wins) and readers never observe a
half-updated list.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

import httpx

from relay.config import LLMConfig, get_settings
from relay.discovery.scoring import (
    SAFETY_FALLBACK_HUGGINGFACE,
    SAFETY_FALLBACK_OPENROUTER,
    merge_huggingface_models,
    rank_free_openrouter_models,
)
from relay.models.outcome import ModelCatalog

logger = logging.getLogger(__name__)

OPENROUTER = "openrouter"
HUGGINGFACE = "huggingface"


class ModelDiscoveryCache:
    """
    Lazily refreshed model catalogs for OpenRouter and Hugging Face.

    ``ensure_fresh`` is idempotent and cheap when the cache is warm, so it is
    safe to call before every orchestration attempt.
    """

    def __init__(
        self,
        config: LLMConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self._transport = transport
        self._clock = clock
        self._openrouter = ModelCatalog(provider=OPENROUTER, refreshed_at=0.0)
        self._huggingface = ModelCatalog(provider=HUGGINGFACE, refreshed_at=0.0)
        self._last_refresh: Optional[float] = None
        self._background_tasks: set[asyncio.Task] = set()

    @property
    def openrouter_models(self) -> tuple[str, ...]:
        return self._openrouter.models

    @property
    def huggingface_models(self) -> tuple[str, ...]:
        return self._huggingface.models

    @property
    def openrouter_catalog(self) -> ModelCatalog:
        return self._openrouter

    @property
    def huggingface_catalog(self) -> ModelCatalog:
        return self._huggingface

    def is_stale(self) -> bool:
        if self._last_refresh is None:
            return True
        if self._openrouter.is_empty or self._huggingface.is_empty:
            return True
        return self._clock() - self._last_refresh > self.config.catalog_ttl_seconds

    async def ensure_fresh(self) -> None:
        """Refresh both catalogs if they are older than the TTL or empty."""
        if not self.is_stale():
            return

        now = self._clock()
        openrouter_models, huggingface_models = await asyncio.gather(
            self._discover_openrouter(),
            self._discover_huggingface(),
        )

        self._openrouter = ModelCatalog(
            provider=OPENROUTER, models=tuple(openrouter_models), refreshed_at=now
        )
        self._huggingface = ModelCatalog(
            provider=HUGGINGFACE, models=tuple(huggingface_models), refreshed_at=now
        )
        self._last_refresh = now

    def refresh_in_background(self) -> Optional[asyncio.Task]:
        """
        Schedule ``ensure_fresh`` without awaiting it.

        Failures are logged and never propagated to the caller.
        """
        if not self.is_stale():
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; skipping background catalog refresh")
            return None

        task = loop.create_task(self.ensure_fresh())
        self._background_tasks.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background catalog refresh failed: {error}", exc_info=error)

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    async def _discover_openrouter(self) -> list[str]:
        try:
            logger.info("Scanning OpenRouter for free models...")
            async with self._client(self.config.discovery_timeout_seconds) as client:
                response = await client.get(self.config.openrouter_models_url)
                response.raise_for_status()
                data = response.json()

            if not isinstance(data, dict) or not isinstance(data.get("data"), list):
                raise ValueError("Invalid OpenRouter listing shape")

            model_ids = rank_free_openrouter_models(data["data"])
            if not model_ids:
                logger.warning("OpenRouter listing has no free models, using safety list")
                return list(SAFETY_FALLBACK_OPENROUTER)

            logger.info(f"Discovery complete: {len(model_ids)} free OpenRouter models")
            return model_ids

        except Exception as e:
            logger.warning(f"OpenRouter discovery failed, using safety list: {e}")
            return list(SAFETY_FALLBACK_OPENROUTER)

    async def _discover_huggingface(self) -> list[str]:
        params = {
            "pipeline_tag": "text-generation",
            "sort": "downloads",
            "direction": "-1",
            "limit": str(self.config.huggingface_discovery_limit),
        }
        try:
            logger.info("Scanning Hugging Face for popular text-generation models...")
            async with self._client(self.config.discovery_timeout_seconds) as client:
                response = await client.get(self.config.huggingface_models_url, params=params)
                response.raise_for_status()
                data = response.json()

            if not isinstance(data, list):
                raise ValueError("Invalid Hugging Face listing shape")

            merged = merge_huggingface_models(str(entry["modelId"]) for entry in data)
            logger.info(f"Discovery complete: {len(merged)} Hugging Face models")
            return merged

        except Exception as e:
            logger.warning(f"Hugging Face discovery failed, using safety list: {e}")
            return list(SAFETY_FALLBACK_HUGGINGFACE)


_model_cache: Optional[ModelDiscoveryCache] = None


def get_model_cache() -> ModelDiscoveryCache:
    """Return the process-wide cache, creating it on first use."""
    global _model_cache
    if _model_cache is None:
        _model_cache = ModelDiscoveryCache(get_settings().llm)
    return _model_cache


def reset_model_cache() -> None:
    """Drop the process-wide cache (used by tests)."""
    global _model_cache
    _model_cache = None
