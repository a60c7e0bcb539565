"""
Local Document Store

Fallback metadata backend kept on the local filesystem: one JSON file per
collection, rewritten atomically. Without a directory it keeps documents
in memory only.
"""

import copy
import json
import logging
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..domain.errors import BackendUnavailableError
from ..domain.file_sharing.document_store import IDocumentStore

logger = logging.getLogger(__name__)


class LocalDocumentStore(IDocumentStore):
    """
    IDocumentStore persisted to JSON files.

    Thread Safety:
        A single process lock guards every read-modify-write. Writes go to a
        temporary file in the same directory and are moved into place with
        ``os.replace``, so readers never see a half-written file.

    Attributes:
        base_path: Directory holding ``<collection>.json`` files, or None
    """

    name = "local"

    def __init__(self, base_path: Optional[Union[str, Path]] = None):
        self.base_path = Path(base_path) if base_path else None
        self._lock = threading.Lock()
        self._memory: Dict[str, Dict[str, Dict[str, Any]]] = {}
        if self.base_path is not None:
            self._ensure_base_directory()

    def _ensure_base_directory(self) -> None:
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackendUnavailableError(
                f"Failed to create fallback data directory: {self.base_path}",
                context={"backend": self.name},
                original_error=e,
            ) from e

    def _collection_path(self, collection: str) -> Path:
        return self.base_path / f"{collection}.json"

    def _load(self, collection: str) -> Dict[str, Dict[str, Any]]:
        if self.base_path is None:
            return self._memory.setdefault(collection, {})
        path = self._collection_path(collection)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self._quarantine(path, str(e))
            return {}
        except OSError as e:
            raise BackendUnavailableError(
                f"Failed to read {path}: {e}",
                context={"backend": self.name},
                original_error=e,
            ) from e
        if not isinstance(data, dict):
            self._quarantine(path, f"top-level {type(data).__name__} instead of an object")
            return {}
        return data

    def _quarantine(self, path: Path, reason: str) -> None:
        """Move an unreadable collection file aside so the next write cannot clobber it."""
        target = path.with_name(f"{path.name}.corrupt-{int(time.time() * 1000)}")
        try:
            os.replace(path, target)
        except OSError as e:
            raise BackendUnavailableError(
                f"Corrupt collection {path} could not be moved aside: {e}",
                context={"backend": self.name},
                original_error=e,
            ) from e
        logger.warning(
            "Corrupt fallback collection %s moved to %s, starting empty: %s",
            path,
            target.name,
            reason,
        )

    def _save(self, collection: str, documents: Dict[str, Dict[str, Any]]) -> None:
        if self.base_path is None:
            self._memory[collection] = documents
            return
        path = self._collection_path(collection)
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{collection}.", suffix=".tmp", dir=str(self.base_path)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(documents, f)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise BackendUnavailableError(
                f"Failed to write {path}: {e}",
                context={"backend": self.name},
                original_error=e,
            ) from e

    def put(self, collection: str, doc_id: str, document: Dict[str, Any]) -> None:
        with self._lock:
            documents = self._load(collection)
            documents[doc_id] = copy.deepcopy(document)
            self._save(collection, documents)

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            document = self._load(collection).get(doc_id)
            return copy.deepcopy(document) if document is not None else None

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> bool:
        with self._lock:
            documents = self._load(collection)
            if doc_id not in documents:
                return False
            documents[doc_id].update(copy.deepcopy(fields))
            self._save(collection, documents)
            return True

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            documents = self._load(collection)
            if doc_id not in documents:
                return False
            del documents[doc_id]
            self._save(collection, documents)
            return True

    def query(
        self, collection: str, filters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        filters = filters or {}
        with self._lock:
            documents = list(self._load(collection).values())
        return [
            copy.deepcopy(document)
            for document in documents
            if all(document.get(field) == value for field, value in filters.items())
        ]

    def ping(self) -> bool:
        if self.base_path is None:
            return True
        return self.base_path.is_dir() and os.access(self.base_path, os.W_OK)
