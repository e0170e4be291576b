"""Artifact stores: durable write-once records keyed by task identifier."""

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path

from forecast_council.errors import InvalidRecordError

logger = logging.getLogger(__name__)


class ArtifactStore(ABC):
    """Key-value store the scheduler uses as its memoization table."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Return True if a record is stored under ``key``."""
        ...

    @abstractmethod
    def get(self, key: str) -> dict | None:
        """Return the record stored under ``key``, or None."""
        ...

    @abstractmethod
    def put(self, key: str, record: dict) -> None:
        """Store ``record`` under ``key``."""
        ...

    @abstractmethod
    def keys(self) -> list[str]:
        """Return every stored key, sorted."""
        ...

    def values(self) -> list[dict]:
        records = []
        for key in self.keys():
            record = self.get(key)
            if record is not None:
                records.append(record)
        return records


class MemoryStore(ArtifactStore):
    """In-process store for tests and dry runs."""

    def __init__(self, records: dict[str, dict] | None = None) -> None:
        self._records: dict[str, dict] = dict(records or {})

    def exists(self, key: str) -> bool:
        return key in self._records

    def get(self, key: str) -> dict | None:
        return self._records.get(key)

    def put(self, key: str, record: dict) -> None:
        self._records[key] = record

    def keys(self) -> list[str]:
        return sorted(self._records)


class JsonDirStore(ArtifactStore):
    """One pretty-printed ``<key>.json`` file per record.

    Writes go through a temp file and ``os.replace`` so a crash never leaves
    a truncated record behind, which would otherwise count as cached.
    """

    def __init__(self, directory: Path) -> None:
        self._dir = directory

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, key: str) -> Path:
        return self._dir / f"{key}.json"

    def exists(self, key: str) -> bool:
        return self._path(key).exists()

    def get(self, key: str) -> dict | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                record = json.load(f)
        except json.JSONDecodeError as exc:
            raise InvalidRecordError(key, f"invalid JSON in {path} ({exc})") from exc
        if not isinstance(record, dict):
            raise InvalidRecordError(key, f"{path} does not hold a JSON object")
        return record

    def put(self, key: str, record: dict) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            tmp.write_text(json.dumps(record, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp, path)
        finally:
            tmp.unlink(missing_ok=True)
        logger.debug("Stored %s", path)

    def keys(self) -> list[str]:
        if not self._dir.exists():
            return []
        return sorted(p.stem for p in self._dir.glob("*.json"))
