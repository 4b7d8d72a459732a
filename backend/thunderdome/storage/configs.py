"""
Saved Configuration Store — one JSON file per configuration.

Layout::

    <config_storage_dir>/
        config_1735689600000_k3j9x0a1b.json
        config_1735689655123_p0q8r7s6t.json

Files are written camelCase (systemPrompt, createdAt, ...) so they can be
loaded straight back into the browser UI.  Blocking file I/O runs in a worker
thread via asyncio.to_thread.

Ids are generated server-side and only ``[A-Za-z0-9_-]`` is accepted on
lookup, so a client-supplied id can never escape the storage directory.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import secrets
import string
import time
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from thunderdome.core.errors import ConfigNotFoundError
from thunderdome.schemas.arena import ConfigListItem, SavedConfig, SaveConfigRequest

logger = logging.getLogger(__name__)

_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_config_id() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"config_{int(time.time() * 1000)}_{suffix}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ConfigStore:
    """
    Usage::

        store  = ConfigStore(settings.config_storage_dir)
        saved  = await store.save(SaveConfigRequest(name="CRDT shoot-out", ...))
        items  = await store.list()
    """

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)

    @property
    def directory(self) -> Path:
        return self._dir

    # -----------------------------------------------------------------------
    # Internal helpers (blocking, run via asyncio.to_thread)
    # -----------------------------------------------------------------------

    def _path(self, config_id: str) -> Path:
        if not _ID_RE.match(config_id):
            raise ConfigNotFoundError(config_id)
        return self._dir / f"{config_id}.json"

    def _ensure_dir(self) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)

    def _read(self, path: Path) -> SavedConfig:
        return SavedConfig.model_validate(json.loads(path.read_text(encoding="utf-8")))

    def _write(self, config: SavedConfig) -> None:
        self._ensure_dir()
        payload = config.model_dump(mode="json", by_alias=True, exclude_none=True)
        self._path(config.id).write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def _list_sync(self) -> list[ConfigListItem]:
        self._ensure_dir()
        items: list[ConfigListItem] = []
        for path in self._dir.glob("*.json"):
            try:
                config = self._read(path)
            except (OSError, ValueError, ValidationError):
                logger.warning("ConfigStore | skipping unreadable file=%s", path.name)
                continue
            items.append(ConfigListItem(
                id=config.id,
                name=config.name,
                description=config.description,
                created_at=config.created_at,
                updated_at=config.updated_at,
            ))
        items.sort(key=lambda item: item.updated_at, reverse=True)
        return items

    def _get_sync(self, config_id: str) -> SavedConfig:
        path = self._path(config_id)
        try:
            return self._read(path)
        except FileNotFoundError:
            raise ConfigNotFoundError(config_id)

    def _delete_sync(self, config_id: str) -> None:
        path = self._path(config_id)
        try:
            path.unlink()
        except FileNotFoundError:
            raise ConfigNotFoundError(config_id)

    # -----------------------------------------------------------------------
    # Public interface
    # -----------------------------------------------------------------------

    async def list(self) -> list[ConfigListItem]:
        """Summaries of every stored configuration, most recently updated first."""
        return await asyncio.to_thread(self._list_sync)

    async def get(self, config_id: str) -> SavedConfig:
        """Raises ConfigNotFoundError for unknown or malformed ids."""
        return await asyncio.to_thread(self._get_sync, config_id)

    async def save(self, request: SaveConfigRequest) -> SavedConfig:
        now = _now_iso()
        config = SavedConfig(
            **request.model_dump(),
            id=generate_config_id(),
            created_at=now,
            updated_at=now,
        )
        await asyncio.to_thread(self._write, config)
        logger.info("ConfigStore | saved id=%s name=%r", config.id, config.name)
        return config

    async def update(self, config_id: str, request: SaveConfigRequest) -> SavedConfig:
        """Replace the editable fields; id and created_at are preserved."""
        existing = await self.get(config_id)
        config = SavedConfig(
            **request.model_dump(),
            id=existing.id,
            created_at=existing.created_at,
            updated_at=_now_iso(),
        )
        await asyncio.to_thread(self._write, config)
        logger.info("ConfigStore | updated id=%s", config.id)
        return config

    async def delete(self, config_id: str) -> None:
        await asyncio.to_thread(self._delete_sync, config_id)
        logger.info("ConfigStore | deleted id=%s", config_id)
