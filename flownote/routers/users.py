from typing import List

from fastapi import APIRouter, Depends, Query

from flownote.schemas.user import UserPublic
from flownote.services.user_service import UserService
from flownote.utils.dependencies import get_current_user, get_user_service


router = APIRouter(prefix="/users", tags=["users"])


@router.get("/search", response_model=List[UserPublic])
async def search_users(q: str = Query("", max_length=100), current_user: UserPublic = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    return await service.search_users(q, current_user)


@router.get("/{user_id}", response_model=UserPublic)
async def get_user(user_id: str, current_user: UserPublic = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    return await service.get_user(user_id)
