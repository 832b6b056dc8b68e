"""Cached access to the gateway's metadata document."""

from __future__ import annotations

import logging
import time
from typing import Optional

from pallet_interactor.config import default_config
from pallet_interactor.gateway_api import GatewayApiError, default_client
from pallet_interactor.interactor import MetadataView

logger = logging.getLogger(__name__)


class MetadataCache:
    """
    Holds the last metadata view fetched from the gateway.

    A failed fetch keeps serving the previous view (or None before the first
    success), so enumerations degrade to empty instead of failing.
    """

    def __init__(self, client, *, ttl_seconds: float = 60.0) -> None:
        self.client = client
        self.ttl_seconds = ttl_seconds
        self._view: Optional[MetadataView] = None
        self._fetched_at: Optional[float] = None

    def _is_fresh(self) -> bool:
        if self._fetched_at is None:
            return False
        return (time.monotonic() - self._fetched_at) < self.ttl_seconds

    @property
    def view(self) -> Optional[MetadataView]:
        return self._view

    async def get(self) -> Optional[MetadataView]:
        if self._is_fresh():
            return self._view
        return await self.refresh()

    async def refresh(self) -> Optional[MetadataView]:
        try:
            document = await self.client.fetch_metadata()
        except GatewayApiError as exc:
            logger.warning("metadata fetch failed error=%s", exc, extra={"error": str(exc)})
            return self._view
        except Exception:
            logger.exception("Unexpected error fetching metadata")
            return self._view
        self._view = MetadataView.from_document(document)
        self._fetched_at = time.monotonic()
        return self._view

    def invalidate(self) -> None:
        self._view = None
        self._fetched_at = None


default_metadata_cache = MetadataCache(default_client, ttl_seconds=default_config.metadata_ttl_seconds)
