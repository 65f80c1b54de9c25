from fastapi import APIRouter, Depends, HTTPException, status

from flownote.schemas.user import LoginRequest, Token, UserCreate, UserPublic
from flownote.services.user_service import UserService
from flownote.utils.dependencies import get_current_user, get_user_service


router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
async def register(payload: UserCreate, service: UserService = Depends(get_user_service)):
    try:
        return await service.register_user(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.post("/login", response_model=Token)
async def login(payload: LoginRequest, service: UserService = Depends(get_user_service)):
    user = await service.authenticate_user(payload.email, payload.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return service.issue_token(user)


@router.get("/me", response_model=UserPublic)
async def me(current_user: UserPublic = Depends(get_current_user)):
    return current_user
