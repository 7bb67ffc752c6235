"""
Profile API endpoints - Create, read, update and delete the current user's profile.
"""

from fastapi import APIRouter, Depends, status

from ..core.exceptions import ProfileNotFoundError
from ..models.profile import CreateProfileRequest, Profile, ProfileStats, UpdateProfileRequest
from ..storage import ProfileStore, get_profile_store
from ..utils.auth import get_current_user_id

router = APIRouter(prefix="/api/profile", tags=["profile"])


@router.post("", response_model=Profile, status_code=status.HTTP_201_CREATED)
async def create_profile(
    request: CreateProfileRequest,
    user_id: str = Depends(get_current_user_id),
    profiles: ProfileStore = Depends(get_profile_store)
):
    """
    Create the profile of the current user.

    Returns:
        Profile: The created profile (409 if one already exists)
    """
    return await profiles.create(user_id, request)


@router.get("", response_model=Profile)
async def get_profile(
    user_id: str = Depends(get_current_user_id),
    profiles: ProfileStore = Depends(get_profile_store)
):
    profile = await profiles.get(user_id)
    if profile is None:
        raise ProfileNotFoundError()
    return profile


@router.put("", response_model=Profile)
async def update_profile(
    request: UpdateProfileRequest,
    user_id: str = Depends(get_current_user_id),
    profiles: ProfileStore = Depends(get_profile_store)
):
    """Update the fields present in the request body."""
    return await profiles.update(user_id, request)


@router.delete("")
async def delete_profile(
    user_id: str = Depends(get_current_user_id),
    profiles: ProfileStore = Depends(get_profile_store)
):
    if not await profiles.delete(user_id):
        raise ProfileNotFoundError()
    return {"status": "success", "message": "Profile deleted successfully"}


@router.get("/stats", response_model=ProfileStats)
async def get_profile_stats(
    user_id: str = Depends(get_current_user_id),
    profiles: ProfileStore = Depends(get_profile_store)
):
    """Whether the user has a profile, its completeness and timestamps."""
    return await profiles.get_stats(user_id)
