"""
Storage Interface - Abstract base class for document storage implementations.
This interface enables switching between local disk and remote object stores.
"""

from abc import ABC, abstractmethod
from typing import Optional, List


class StorageInterface(ABC):
    """
    Abstract storage interface for whole-document persistence.

    Implementations must replace a document atomically on ``save``: a
    concurrent ``load`` sees either the previous or the new content, never a
    partial write. I/O failures raise ``PersistenceError``.
    """

    @abstractmethod
    async def save(self, path: str, content: bytes | str) -> None:
        """
        Atomically write content to the specified path.

        Args:
            path: Relative path (e.g., "chats/<chat_id>.json")
            content: Content to save (bytes or text)
        """
        pass

    @abstractmethod
    async def load(self, path: str) -> Optional[bytes]:
        """
        Load content from the specified path.

        Returns:
            Optional[bytes]: File content, or None if the document doesn't exist
        """
        pass

    @abstractmethod
    async def exists(self, path: str) -> bool:
        pass

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """
        Delete the document at the specified path.

        Returns:
            bool: True if a document was removed
        """
        pass

    @abstractmethod
    async def list(self, path: str, pattern: Optional[str] = None) -> List[str]:
        """
        List documents directly under a directory.

        Args:
            path: Directory path to list
            pattern: Optional glob pattern (e.g., "*.json")

        Returns:
            List[str]: Sorted relative paths
        """
        pass
