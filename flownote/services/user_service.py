import logging
from typing import List, Optional

from pymongo.errors import DuplicateKeyError

from flownote.repositories.user_repository import UserRepository
from flownote.schemas.user import Token, UserCreate, UserInDB, UserPublic
from flownote.utils.exceptions import NotFoundError
from flownote.utils.security import create_access_token, hash_password, verify_password


logger = logging.getLogger(__name__)

MIN_SEARCH_LENGTH = 2


class UserService:
    """Registration, login and profile lookups."""

    def __init__(self, user_repository: UserRepository):
        self.user_repository = user_repository

    async def register_user(self, payload: UserCreate) -> UserPublic:
        """
        Register a new user
        - the payload has already checked email format, password length and confirmation
        - reject an email that is already registered
        - store only the password hash
        """
        existing = await self.user_repository.get_user_by_email(payload.email)
        if existing:
            raise ValueError("Email already registered")

        try:
            new_id = await self.user_repository.create_user(
                email=payload.email,
                hashed_password=hash_password(payload.password),
                name=payload.name,
                role=payload.role,
                school_id=payload.school_id,
            )
        except DuplicateKeyError as exc:
            # lost a race with a concurrent registration of the same email
            raise ValueError("Email already registered") from exc

        logger.info("Registered %s user %s", payload.role, new_id)
        return UserPublic(
            id=new_id,
            email=payload.email,
            name=payload.name,
            role=payload.role,
            school_id=payload.school_id,
        )

    async def authenticate_user(self, email: str, password: str) -> Optional[UserInDB]:
        user = await self.user_repository.get_user_by_email(email)
        if not user:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user

    def issue_token(self, user: UserPublic) -> Token:
        return Token(access_token=create_access_token(user.id, role=user.role))

    async def get_user(self, user_id: str) -> UserPublic:
        user = await self.user_repository.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return UserPublic.model_validate(user.model_dump())

    async def get_profiles(self, user_ids: List[str]) -> List[UserPublic]:
        return await self.user_repository.get_users_by_ids(user_ids)

    async def search_users(self, query: str, viewer: UserPublic) -> List[UserPublic]:
        """Name-prefix search within the viewer's school, never returning the viewer."""
        query = (query or "").strip()
        if len(query) < MIN_SEARCH_LENGTH:
            return []
        return await self.user_repository.search_by_name_prefix(
            query,
            school_id=viewer.school_id,
            exclude_id=viewer.id,
        )

    async def register_push_token(self, user_id: str, token: str) -> None:
        if not await self.user_repository.add_fcm_token(user_id, token):
            raise NotFoundError("user", user_id)
