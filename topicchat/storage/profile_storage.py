"""
Profile Storage - Persistent user profiles using StorageInterface.
Each profile is one JSON document at ``profiles/<user_id>.json``.
"""

import asyncio
import logging
import weakref
from typing import Optional

from pydantic import ValidationError

from .interface import StorageInterface
from .local_storage import LocalStorage
from ..core.exceptions import PersistenceError, ProfileExistsError, ProfileNotFoundError
from ..models.chat import utc_now
from ..models.profile import CreateProfileRequest, Profile, ProfileStats, UpdateProfileRequest

logger = logging.getLogger(__name__)


class ProfileStore:
    """
    Manages persistent storage of user profiles.
    A user has at most one profile.
    """

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.profiles_dir = "profiles"
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def _profile_path(self, user_id: str) -> str:
        return f"{self.profiles_dir}/{user_id}.json"

    async def _write(self, profile: Profile) -> None:
        await self.storage.save(self._profile_path(profile.user_id), profile.model_dump_json(indent=2))

    async def get(self, user_id: str) -> Optional[Profile]:
        """
        Get the profile of a user.

        Returns:
            Optional[Profile]: The profile or None if the user has none
        """
        content = await self.storage.load(self._profile_path(user_id))
        if content is None:
            return None
        try:
            return Profile.model_validate_json(content)
        except ValidationError as e:
            logger.error(f"Corrupt profile document for user {user_id}: {e}")
            raise PersistenceError(f"Profile for {user_id} is unreadable") from e

    async def create(self, user_id: str, request: CreateProfileRequest) -> Profile:
        """
        Create the profile of a user.

        Raises:
            ProfileExistsError: The user already has a profile
        """
        async with self._lock(user_id):
            if await self.get(user_id) is not None:
                raise ProfileExistsError()
            now = utc_now()
            profile = Profile(
                user_id=user_id,
                name=request.name,
                age=request.age,
                additional_info=request.additional_info,
                created_at=now,
                updated_at=now,
            )
            await self._write(profile)
        logger.info(f"Profile created for user: {user_id}")
        return profile

    async def update(self, user_id: str, updates: UpdateProfileRequest) -> Profile:
        """
        Apply the fields set in ``updates``.

        Raises:
            ProfileNotFoundError: The user has no profile
        """
        async with self._lock(user_id):
            profile = await self.get(user_id)
            if profile is None:
                raise ProfileNotFoundError()
            for field, value in updates.model_dump(exclude_none=True).items():
                setattr(profile, field, value)
            profile.updated_at = utc_now()
            await self._write(profile)
        logger.info(f"Profile updated for user: {user_id}")
        return profile

    async def delete(self, user_id: str) -> bool:
        async with self._lock(user_id):
            deleted = await self.storage.delete(self._profile_path(user_id))
        if deleted:
            logger.info(f"Profile deleted for user: {user_id}")
        return deleted

    async def get_stats(self, user_id: str) -> ProfileStats:
        profile = await self.get(user_id)
        if profile is None:
            return ProfileStats(has_profile=False, is_complete=False)
        return ProfileStats(
            has_profile=True,
            is_complete=profile.is_complete(),
            profile_created_at=profile.created_at,
            profile_updated_at=profile.updated_at,
        )


# Global profile store instance
_profile_store: Optional[ProfileStore] = None


def init_profile_store(storage: StorageInterface = None) -> ProfileStore:
    """
    Initialize the global profile store instance.

    Args:
        storage: Optional StorageInterface implementation. If None, creates LocalStorage.
    """
    global _profile_store
    if storage is None:
        storage = LocalStorage()
    _profile_store = ProfileStore(storage)
    return _profile_store


def get_profile_store() -> ProfileStore:
    """Get the global profile store instance."""
    if _profile_store is None:
        raise RuntimeError("Profile store not initialized. Call init_profile_store() first.")
    return _profile_store
