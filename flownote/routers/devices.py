from fastapi import APIRouter, Depends

from flownote.schemas.user import PushTokenRequest, UserPublic
from flownote.services.user_service import UserService
from flownote.utils.dependencies import get_current_user, get_user_service


router = APIRouter(prefix="/devices", tags=["push"])


@router.post("/register")
async def register_device(payload: PushTokenRequest, current_user: UserPublic = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    await service.register_push_token(current_user.id, payload.token)
    return {"ok": True}
