"""
Unit tests for the profile store.
"""

import pytest
from pydantic import ValidationError

from topicchat.core.exceptions import ProfileExistsError, ProfileNotFoundError
from topicchat.models import CreateProfileRequest, UpdateProfileRequest
from topicchat.storage import ProfileStore


@pytest.fixture
def profiles(storage):
    return ProfileStore(storage)


class TestProfileRequests:

    def test_fields_are_trimmed(self):
        request = CreateProfileRequest(name="  Sam ", age=29, additional_info=" runner ")
        assert request.name == "Sam"
        assert request.additional_info == "runner"

    @pytest.mark.parametrize("fields", [
        {"name": "S", "age": 29},
        {"name": "   ", "age": 29},
        {"name": "x" * 51, "age": 29},
        {"name": "Sam", "age": 12},
        {"name": "Sam", "age": 121},
        {"name": "Sam", "age": 29, "additional_info": "x" * 501},
    ])
    def test_invalid_fields(self, fields):
        with pytest.raises(ValidationError):
            CreateProfileRequest(**fields)

    def test_update_fields_are_optional(self):
        assert UpdateProfileRequest().model_dump(exclude_none=True) == {}
        with pytest.raises(ValidationError):
            UpdateProfileRequest(age=5)


class TestProfileStore:

    @pytest.mark.asyncio
    async def test_create_and_get(self, profiles):
        created = await profiles.create("user-1", CreateProfileRequest(name="Sam", age=29))

        assert created.user_id == "user-1"
        assert created.additional_info == ""
        assert await profiles.get("user-1") == created
        assert await profiles.get("user-2") is None

    @pytest.mark.asyncio
    async def test_one_profile_per_user(self, profiles):
        await profiles.create("user-1", CreateProfileRequest(name="Sam", age=29))
        with pytest.raises(ProfileExistsError):
            await profiles.create("user-1", CreateProfileRequest(name="Other", age=40))

    @pytest.mark.asyncio
    async def test_update_changes_only_given_fields(self, profiles):
        created = await profiles.create("user-1", CreateProfileRequest(name="Sam", age=29))

        updated = await profiles.update("user-1", UpdateProfileRequest(age=30))

        assert updated.name == "Sam"
        assert updated.age == 30
        assert updated.updated_at >= created.updated_at
        assert (await profiles.get("user-1")).age == 30

    @pytest.mark.asyncio
    async def test_update_missing_profile(self, profiles):
        with pytest.raises(ProfileNotFoundError):
            await profiles.update("user-1", UpdateProfileRequest(name="Sam"))

    @pytest.mark.asyncio
    async def test_delete(self, profiles):
        await profiles.create("user-1", CreateProfileRequest(name="Sam", age=29))

        assert await profiles.delete("user-1") is True
        assert await profiles.get("user-1") is None
        assert await profiles.delete("user-1") is False

    @pytest.mark.asyncio
    async def test_stats(self, profiles):
        stats = await profiles.get_stats("user-1")
        assert stats.has_profile is False
        assert stats.is_complete is False
        assert stats.profile_created_at is None

        created = await profiles.create("user-1", CreateProfileRequest(name="Sam", age=29))
        stats = await profiles.get_stats("user-1")
        assert stats.has_profile is True
        assert stats.is_complete is True
        assert stats.profile_created_at == created.created_at
