"""
Media Operator - collaborator contracts for media and generated assets.

The editing core never fetches or decodes media. It only needs metadata
about a media id (to size a new item) and a place to keep assets that
generator agents hand over. Both are kept in memory per session; a
deployment with real storage supplies its own MediaResolver.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol

from pydantic import Field

from models.directive_models import GeneratedAsset
from models.timeline_models import CamelModel, MediaKind, generate_id

logger = logging.getLogger(__name__)


class MediaNotFoundError(Exception):
    """Raised when a media id is unknown to the resolver."""

    def __init__(self, media_id: str):
        self.media_id = media_id
        super().__init__(f"Media file not found: {media_id}")


class MediaFile(CamelModel):
    """Metadata for a piece of source media (no bytes)."""

    media_id: str = Field(default_factory=lambda: generate_id("media_"), alias="id")
    name: str
    url: str
    kind: MediaKind = Field(alias="type")
    duration: float | None = Field(default=None, description="Seconds")
    width: int | None = None
    height: int | None = None
    fps: float | None = None
    mime_type: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MediaResolver(Protocol):
    def get_media_file(self, media_id: str) -> MediaFile | None: ...


class InMemoryMediaResolver:
    """Session-local media catalogue."""

    def __init__(self) -> None:
        self._files: dict[str, MediaFile] = {}

    def register(self, media_file: MediaFile) -> MediaFile:
        self._files[media_file.media_id] = media_file
        logger.debug("Registered media %s (%s)", media_file.media_id, media_file.name)
        return media_file

    def get_media_file(self, media_id: str) -> MediaFile | None:
        return self._files.get(media_id)

    def require(self, media_id: str) -> MediaFile:
        media_file = self._files.get(media_id)
        if media_file is None:
            raise MediaNotFoundError(media_id)
        return media_file

    def list_files(self) -> list[MediaFile]:
        return list(self._files.values())

    def delete(self, media_id: str) -> bool:
        return self._files.pop(media_id, None) is not None


class AssetRegistry:
    """Generated assets known to a session, keyed by asset id."""

    def __init__(self) -> None:
        self._assets: dict[str, GeneratedAsset] = {}

    def submit(self, asset: GeneratedAsset) -> None:
        self._assets[asset.asset_id] = asset

    def get(self, asset_id: str) -> GeneratedAsset | None:
        return self._assets.get(asset_id)

    def list_assets(self) -> list[GeneratedAsset]:
        return list(self._assets.values())

    def __len__(self) -> int:
        return len(self._assets)
