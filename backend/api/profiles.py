from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.database import get_db, utcnow
from backend.core.security import get_current_user, get_current_user_id
from backend.models.profile import Profile
from backend.schemas.profile_schema import ProfileCreate, ProfileResponse, ProfileUpdate
from backend.utils.logger import get_logger

logger = get_logger("backend.api.profiles")

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.post("/me", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
async def create_my_profile(
    body: ProfileCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Create the caller's profile; the id always comes from the token."""
    result = await db.execute(select(Profile).filter(Profile.id == user_id))
    if result.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="Profile already exists")

    profile = Profile(
        id=user_id,
        email=body.email,
        full_name=body.full_name,
        role=body.role,
        bio=body.bio or "",
        avatar_url=body.avatar_url or "",
        specialization=(body.specialization or "") if body.role == "doctor" else "",
        organization=(body.organization or "") if body.role == "ngo" else "",
    )
    db.add(profile)
    await db.commit()
    await db.refresh(profile)
    logger.info("Profile created", extra={"user_id": user_id, "role": profile.role})
    return profile


@router.get("/me", response_model=ProfileResponse)
async def get_me(current_user: Profile = Depends(get_current_user)):
    return current_user


@router.put("/me", response_model=ProfileResponse)
async def update_me(
    body: ProfileUpdate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if body.full_name is not None:
        if not body.full_name.strip():
            raise HTTPException(status_code=400, detail="Full name cannot be empty")
        current_user.full_name = body.full_name.strip()
    if body.bio is not None:
        current_user.bio = body.bio
    if body.avatar_url is not None:
        current_user.avatar_url = body.avatar_url

    # Role-specific fields are silently ignored for other roles
    if body.specialization is not None and current_user.role == "doctor":
        current_user.specialization = body.specialization
    if body.organization is not None and current_user.role == "ngo":
        current_user.organization = body.organization

    current_user.updated_at = utcnow()
    await db.commit()
    await db.refresh(current_user)
    logger.info("Profile updated", extra={"user_id": current_user.id})
    return current_user


@router.get("/{profile_id}", response_model=ProfileResponse)
async def get_profile(
    profile_id: str,
    _: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(Profile).filter(Profile.id == profile_id))
    profile = result.scalar_one_or_none()
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile
