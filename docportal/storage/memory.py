# docportal/storage/memory.py
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List, Tuple
from urllib.parse import quote

from ..exceptions import DocumentNotFound
from .base import StorageClient
from .dto import DocumentRecord


class InMemoryStorageClient(StorageClient):
    """
    A process-local store with the same contract as the cloud clients.
    Used by the test-suite and for local demos (STORAGE_PROVIDER=memory).
    """

    def __init__(self, container_name: str = "documents"):
        self.container_name = container_name
        self._objects: Dict[str, Tuple[bytes, datetime]] = {}
        self._lock = threading.Lock()

    def list_files(self) -> List[DocumentRecord]:
        with self._lock:
            snapshot = list(self._objects.items())
        return [
            DocumentRecord(
                id=name,
                name=name,
                size=len(data),
                uploaded_at=created,
                url=self.url_for(name),
            )
            for name, (data, created) in snapshot
        ]

    def upload_file(self, name: str, data: bytes) -> str:
        with self._lock:
            # Overwriting replaces the object, so it gets a fresh creation time.
            self._objects.pop(name, None)
            self._objects[name] = (bytes(data), datetime.now(timezone.utc))
        logging.info(f"Stored {len(data)} bytes under '{name}' in memory.")
        return self.url_for(name)

    def download_file(self, name: str) -> bytes:
        with self._lock:
            entry = self._objects.get(name)
        if entry is None:
            raise DocumentNotFound(f"Object '{name}' not found in container '{self.container_name}'.")
        return entry[0]

    def delete_file(self, name: str):
        with self._lock:
            removed = self._objects.pop(name, None)
        if removed is None:
            logging.warning(f"Object '{name}' not found. Nothing to delete.")

    def url_for(self, name: str) -> str:
        return f"memory://{self.container_name}/{quote(name)}"

    def verify_container_exists(self):
        logging.info(f"In-memory container '{self.container_name}' is always available.")
