"""
Local Filesystem Storage Implementation.
Stores each document as a file under a base directory on the server.
"""

import logging
import os
import uuid
import aiofiles
from pathlib import Path
from typing import Optional, List

from .interface import StorageInterface
from ..core.exceptions import PersistenceError

logger = logging.getLogger(__name__)


class LocalStorage(StorageInterface):
    """
    Local filesystem storage implementation.
    Writes go to a temporary sibling file that is then renamed over the
    target, so readers never observe a partially written document.
    """

    def __init__(self, base_dir: str = "./data"):
        """
        Args:
            base_dir: Base directory for all stored documents
        """
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, path: str) -> Path:
        """Convert relative path to an absolute path within base directory."""
        full_path = (self.base_dir / path).resolve()

        if not full_path.is_relative_to(self.base_dir):
            logger.warning(f"Rejected storage path outside base directory: {path}")
            raise PersistenceError(f"Invalid path: {path} - path traversal detected")

        return full_path

    async def save(self, path: str, content: bytes | str) -> None:
        full_path = self._get_full_path(path)
        tmp_path = full_path.with_name(f".{full_path.name}.{uuid.uuid4().hex}.tmp")
        data = content.encode('utf-8') if isinstance(content, str) else content

        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, 'wb') as f:
                await f.write(data)
            os.replace(tmp_path, full_path)
        except OSError as e:
            logger.error(f"Error saving document {path}: {e}", exc_info=True)
            tmp_path.unlink(missing_ok=True)
            raise PersistenceError(f"Failed to save {path}") from e

    async def load(self, path: str) -> Optional[bytes]:
        full_path = self._get_full_path(path)
        try:
            async with aiofiles.open(full_path, 'rb') as f:
                return await f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error(f"Error loading document {path}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to load {path}") from e

    async def exists(self, path: str) -> bool:
        return self._get_full_path(path).is_file()

    async def delete(self, path: str) -> bool:
        full_path = self._get_full_path(path)
        try:
            full_path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Error deleting document {path}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to delete {path}") from e

    async def list(self, path: str, pattern: Optional[str] = None) -> List[str]:
        full_path = self._get_full_path(path)
        if not full_path.is_dir():
            return []

        files = [
            p for p in full_path.glob(pattern or "*")
            if p.is_file() and not p.name.endswith(".tmp")
        ]
        return sorted(str(p.relative_to(self.base_dir)) for p in files)
