"""
In-process session store. Documents are held as JSON-safe dicts so every
read hands out an independent copy.
"""
import copy
import threading
from typing import Any, Dict, List, Optional

from storage.base import SessionStore


class InMemorySessionStore(SessionStore):
    """Dict-backed store for development and tests."""

    def __init__(self, max_update_attempts: Optional[int] = None):
        super().__init__(max_update_attempts)
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def _insert(self, document: Dict[str, Any]) -> None:
        with self._lock:
            if document["id"] in self._documents:
                raise ValueError(f"Duplicate interview id {document['id']}")
            self._documents[document["id"]] = copy.deepcopy(document)

    def _fetch(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            document = self._documents.get(session_id)
            return copy.deepcopy(document) if document is not None else None

    def _replace(self, document: Dict[str, Any], expected_version: int) -> bool:
        with self._lock:
            current = self._documents.get(document["id"])
            if current is None or current.get("version", 0) != expected_version:
                return False
            self._documents[document["id"]] = copy.deepcopy(document)
            return True

    def _fetch_owned(self, owner: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                copy.deepcopy(d) for d in self._documents.values()
                if d.get("owner") == owner
            ]
