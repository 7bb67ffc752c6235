"""
Unit tests for the local filesystem storage.
"""

import pytest
from unittest.mock import patch

from topicchat.core.exceptions import PersistenceError
from topicchat.storage import LocalStorage


class TestLocalStorage:

    @pytest.mark.asyncio
    async def test_save_and_load(self, storage):
        await storage.save("chats/abc.json", '{"id": "abc"}')
        assert await storage.exists("chats/abc.json")
        assert await storage.load("chats/abc.json") == b'{"id": "abc"}'

    @pytest.mark.asyncio
    async def test_overwrite_leaves_no_temp_files(self, storage):
        await storage.save("chats/abc.json", b"first")
        await storage.save("chats/abc.json", b"second")

        assert await storage.load("chats/abc.json") == b"second"
        assert await storage.list("chats") == ["chats/abc.json"]

    @pytest.mark.asyncio
    async def test_missing_document(self, storage):
        assert await storage.load("chats/missing.json") is None
        assert not await storage.exists("chats/missing.json")
        assert await storage.delete("chats/missing.json") is False
        assert await storage.list("nowhere") == []

    @pytest.mark.asyncio
    async def test_delete_and_list(self, storage):
        await storage.save("owners/b.json", "[]")
        await storage.save("owners/a.json", "[]")
        await storage.save("owners/notes.txt", "x")

        assert await storage.list("owners", "*.json") == ["owners/a.json", "owners/b.json"]
        assert await storage.delete("owners/a.json") is True
        assert await storage.list("owners", "*.json") == ["owners/b.json"]

    @pytest.mark.asyncio
    async def test_path_traversal_rejected(self, storage):
        with pytest.raises(PersistenceError, match="path traversal"):
            await storage.save("../outside.json", "{}")
        with pytest.raises(PersistenceError, match="path traversal"):
            await storage.load("../../etc/passwd")

    @pytest.mark.asyncio
    async def test_write_failure_raises_persistence_error(self, storage):
        await storage.save("chats/abc.json", b"original")

        with patch("topicchat.storage.local_storage.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(PersistenceError):
                await storage.save("chats/abc.json", b"replacement")

        assert await storage.load("chats/abc.json") == b"original"
        assert await storage.list("chats") == ["chats/abc.json"]

    def test_creates_base_dir(self, tmp_path):
        target = tmp_path / "nested" / "data"
        LocalStorage(str(target))
        assert target.is_dir()
