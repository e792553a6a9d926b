"""Persistent storage backed by a single JSON document."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Union

from .base import StorageBackend, StorageQuotaError, StorageUnavailableError

logger = logging.getLogger(__name__)


class JsonFileStorage(StorageBackend):
    """Key/value storage persisted to one JSON file.

    This class provides:
    - Lazy loading of the file on first access
    - Atomic writes through a temporary file and ``os.replace``
    - An optional size ceiling; writes past it raise ``StorageQuotaError``
    """

    def __init__(self, path: Union[str, Path], max_bytes: Optional[int] = None):
        """Initialize the file storage.

        Args:
            path: Location of the JSON document. Parent directories are created
                on first write.
            max_bytes: Maximum serialized size. None or 0 disables the check.
        """
        self.path = Path(path).expanduser()
        self.max_bytes = max_bytes or None
        self._data: Optional[Dict[str, str]] = None

    def _ensure_loaded(self) -> Dict[str, str]:
        if self._data is not None:
            return self._data

        if not self.path.exists():
            self._data = {}
            return self._data

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageUnavailableError(f"Cannot read {self.path}: {e}") from e

        try:
            parsed = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as e:
            logger.warning(f"Storage file {self.path} is corrupt, starting empty: {e}")
            parsed = {}

        if not isinstance(parsed, dict):
            logger.warning(f"Storage file {self.path} does not hold an object, starting empty")
            parsed = {}

        self._data = {str(k): v for k, v in parsed.items() if isinstance(v, str)}
        logger.debug(f"Loaded {len(self._data)} keys from {self.path}")
        return self._data

    def _write(self, data: Dict[str, str], key: str = "") -> None:
        payload = json.dumps(data)
        if self.max_bytes is not None and len(payload.encode("utf-8")) > self.max_bytes:
            raise StorageQuotaError(
                f"Writing {key or 'storage'} would exceed {self.max_bytes} bytes", key=key
            )

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".storage-")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StorageUnavailableError(f"Cannot write {self.path}: {e}", key=key) from e

    def load(self, key: str) -> Optional[str]:
        return self._ensure_loaded().get(key)

    def save(self, key: str, value: str) -> None:
        current = self._ensure_loaded()
        updated = dict(current)
        updated[key] = value
        self._write(updated, key)
        self._data = updated

    def delete(self, key: str) -> None:
        current = self._ensure_loaded()
        if key not in current:
            return
        updated = dict(current)
        del updated[key]
        self._write(updated, key)
        self._data = updated

    def list_keys(self, prefix: str = "") -> List[str]:
        return [k for k in self._ensure_loaded() if k.startswith(prefix)]
