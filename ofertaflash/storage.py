"""
Composition Store Interface

Narrow boundary to wherever exported images and their records live:
upload bytes and get a public URL back, persist a SavedComposition record,
list and delete them.
"""

import asyncio
import json
import logging
import re
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .models import SavedComposition, Theme

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """The store's files or index could not be read or written."""


class UploadFailure(StoreError):
    """The artifact could not be stored."""


class CompositionNotFound(KeyError):
    def __init__(self, composition_id: str):
        super().__init__(composition_id)
        self.composition_id = composition_id

    def __str__(self) -> str:
        return f"Unknown composition: {self.composition_id!r}"


@dataclass(frozen=True)
class UploadedAsset:
    public_url: str
    storage_path: str


class CompositionStore(ABC):
    """
    Abstract base class for composition storage.

    Implementations must be idempotent on retry: uploading the same filename
    twice stores one object.
    """

    @abstractmethod
    async def upload(self, content: bytes, filename: str) -> UploadedAsset:
        """
        Store image bytes.

        Raises:
            UploadFailure: if the bytes could not be stored
        """
        pass

    @abstractmethod
    async def persist_record(
        self,
        asset: UploadedAsset,
        format_name: str,
        theme: Theme,
        timestamp: Optional[int] = None,
    ) -> str:
        """Save a SavedComposition for an uploaded asset and return its id."""
        pass

    @abstractmethod
    async def list_by_user(self, user_id: Optional[str] = None) -> List[SavedComposition]:
        """Saved compositions, newest first."""
        pass

    @abstractmethod
    async def get(self, composition_id: str) -> SavedComposition:
        """Raises CompositionNotFound."""
        pass

    @abstractmethod
    async def delete(self, composition_id: str) -> None:
        """Raises CompositionNotFound."""
        pass


_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


class LocalCompositionStore(CompositionStore):
    """
    Files plus a JSON index on local disk.

    Layout:
        <root>/files/<user_id>/<filename>
        <root>/compositions.json  {"<user_id>": [record, ...]}
    """

    def __init__(self, root_dir: str, public_base_url: str = "/files", user_id: str = "local"):
        self.root = Path(root_dir)
        self.public_base_url = public_base_url.rstrip("/")
        self.user_id = user_id
        self._lock = asyncio.Lock()

    @property
    def files_dir(self) -> Path:
        return self.root / "files"

    @property
    def index_path(self) -> Path:
        return self.root / "compositions.json"

    def _read_index(self) -> dict:
        if not self.index_path.exists():
            return {}
        try:
            with open(self.index_path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Could not read {self.index_path.name}: {e}") from e

    def _write_index(self, index: dict) -> None:
        tmp = self.index_path.with_suffix(".tmp")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(index, f, ensure_ascii=False, indent=2)
            tmp.replace(self.index_path)
        except OSError as e:
            raise StoreError(f"Could not write {self.index_path.name}: {e}") from e

    def _write_file(self, target: Path, content: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

    async def upload(self, content: bytes, filename: str) -> UploadedAsset:
        if not content:
            raise UploadFailure(f"Refusing to upload empty file {filename!r}")
        safe_name = _UNSAFE.sub("-", filename).strip("-") or f"{uuid.uuid4().hex}.png"
        storage_path = f"{self.user_id}/{safe_name}"
        try:
            await asyncio.to_thread(self._write_file, self.files_dir / storage_path, content)
        except OSError as e:
            raise UploadFailure(f"Could not write {storage_path}: {e}") from e
        logger.info(f"Stored {len(content)} bytes at {storage_path}")
        return UploadedAsset(public_url=f"{self.public_base_url}/{storage_path}", storage_path=storage_path)

    async def persist_record(
        self,
        asset: UploadedAsset,
        format_name: str,
        theme: Theme,
        timestamp: Optional[int] = None,
    ) -> str:
        async with self._lock:
            try:
                index = await asyncio.to_thread(self._read_index)
                records = index.setdefault(self.user_id, [])
                # Retrying the same upload keeps one record
                for record in records:
                    if record.get("storagePath") == asset.storage_path:
                        return record["id"]
                composition = SavedComposition(
                    id=uuid.uuid4().hex,
                    image_url=asset.public_url,
                    storage_path=asset.storage_path,
                    format_name=format_name,
                    timestamp=timestamp if timestamp is not None else int(time.time() * 1000),
                    theme=theme.model_copy(deep=True),
                )
                records.append(composition.to_record())
                await asyncio.to_thread(self._write_index, index)
            except StoreError as e:
                raise UploadFailure(f"Could not record {asset.storage_path}: {e}") from e
        return composition.id

    async def list_by_user(self, user_id: Optional[str] = None) -> List[SavedComposition]:
        index = await asyncio.to_thread(self._read_index)
        compositions = [SavedComposition.model_validate(record) for record in index.get(user_id or self.user_id, [])]
        return sorted(compositions, key=lambda c: c.timestamp, reverse=True)

    async def get(self, composition_id: str) -> SavedComposition:
        index = await asyncio.to_thread(self._read_index)
        for records in index.values():
            for record in records:
                if record.get("id") == composition_id:
                    return SavedComposition.model_validate(record)
        raise CompositionNotFound(composition_id)

    async def delete(self, composition_id: str) -> None:
        async with self._lock:
            index = await asyncio.to_thread(self._read_index)
            for user_id, records in index.items():
                for record in records:
                    if record.get("id") != composition_id:
                        continue
                    records.remove(record)
                    await asyncio.to_thread(self._write_index, index)
                    path = self.files_dir / record["storagePath"]
                    await asyncio.to_thread(path.unlink, missing_ok=True)
                    logger.info(f"Deleted composition {composition_id} of {user_id}")
                    return
        raise CompositionNotFound(composition_id)
