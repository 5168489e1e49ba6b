"""Durable storage of analyses, the selected analysis and the technique library."""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .schemas import Analysis, Technique


logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when the storage backend cannot be read or written."""
    pass


class KeyValueBackend(ABC):
    """Minimal string key-value store."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class MemoryBackend(KeyValueBackend):
    """Backend kept in process memory."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self.values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value

    def delete(self, key: str) -> None:
        self.values.pop(key, None)


class FileBackend(KeyValueBackend):
    """One UTF-8 file per key inside a directory."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f'{key}.json'

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding='utf-8')
        except OSError as e:
            raise PersistenceError(f"Cannot read {path}: {e}")

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f'.{key}.', suffix='.tmp')
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(value)
            os.replace(tmp_name, path)
        except OSError as e:
            raise PersistenceError(f"Cannot write {path}: {e}")

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot delete {key}: {e}")


class PersistenceGateway:
    """Loads and saves the analysis list and its companion keys."""

    ANALYSES_KEY = 'ebiosAnalyses'
    SELECTED_KEY = 'ebiosCurrentAnalysisId'
    TECHNIQUES_KEY = 'ebiosMitreLibrary'

    def __init__(self, backend: KeyValueBackend):
        self.backend = backend

    def load_all(self) -> list[Analysis]:
        """Load every analysis; corrupt or unreadable data yields an empty list."""
        try:
            raw = self.backend.get(self.ANALYSES_KEY)
            if not raw:
                return []
            documents = json.loads(raw)
            if not isinstance(documents, list):
                raise ValueError(f'expected a list, got {type(documents).__name__}')
            return [Analysis.model_validate(doc) for doc in documents]
        except (PersistenceError, ValidationError, ValueError, OverflowError) as e:
            logger.warning('Failed to load stored analyses, resetting: %s', e)
            return []

    def save_all(self, analyses: list[Analysis]) -> None:
        payload = json.dumps([a.model_dump(mode='json') for a in analyses], ensure_ascii=False)
        self.backend.set(self.ANALYSES_KEY, payload)

    def get_selected_id(self) -> Optional[str]:
        try:
            return self.backend.get(self.SELECTED_KEY) or None
        except PersistenceError as e:
            logger.warning('Cannot read selected analysis: %s', e)
            return None

    def set_selected_id(self, analysis_id: str) -> None:
        self.backend.set(self.SELECTED_KEY, analysis_id)

    def load_technique_library(self) -> list[Technique]:
        try:
            raw = self.backend.get(self.TECHNIQUES_KEY)
            if not raw:
                return []
            documents = json.loads(raw)
            if not isinstance(documents, list):
                raise ValueError(f'expected a list, got {type(documents).__name__}')
            return [Technique.model_validate(doc) for doc in documents]
        except (PersistenceError, ValidationError, ValueError) as e:
            logger.warning('Failed to parse stored technique library: %s', e)
            return []

    def save_technique_library(self, techniques: list[Technique]) -> None:
        payload = json.dumps([t.model_dump(mode='json') for t in techniques], ensure_ascii=False)
        self.backend.set(self.TECHNIQUES_KEY, payload)
