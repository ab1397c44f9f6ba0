"""
User Service

Account writes and lookups.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookstore.core.cache import USERS, EntityCache
from bookstore.core.events.publisher import EventPublisher
from bookstore.core.events.schemas import EventType, UserEvent
from bookstore.db.models.user import User
from bookstore.monitoring.logging import get_logger
from bookstore.monitoring.metrics import users_written_counter
from bookstore.schemas.user import UserCreate, UserResponse, UserUpdate
from bookstore.services.exceptions import (
    DuplicateEmailError,
    DuplicatePhoneNumberError,
    DuplicateUsernameError,
    ServiceError,
    UserNotFoundError,
)

logger = get_logger(__name__)


class UserService:
    """User account service. Email, phone number and username are unique."""

    def __init__(
        self,
        session: AsyncSession,
        publisher: EventPublisher,
        cache: Optional[EntityCache] = None,
    ):
        self.session = session
        self.publisher = publisher
        self.cache = cache

    async def _exists(self, column, value, exclude_id=None) -> bool:
        query = select(User.id).where(column == value)
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        result = await self.session.execute(query)
        return result.first() is not None

    async def _check_unique(self, email=None, phone_number=None, username=None, exclude_id=None) -> None:
        if email and await self._exists(User.email, email, exclude_id):
            raise DuplicateEmailError(email)
        if phone_number and await self._exists(User.phone_number, phone_number, exclude_id):
            raise DuplicatePhoneNumberError(phone_number)
        if username and await self._exists(User.username, username, exclude_id):
            raise DuplicateUsernameError(username)

    async def _load(self, user_id: int) -> User:
        user = await self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def _commit(self, user: User) -> None:
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ServiceError(f"User {user.username} conflicts with an existing account") from e
        await self.session.refresh(user)

    def _publish(self, user: User, event_type: EventType) -> None:
        self.publisher.publish(UserEvent(
            event_type=event_type,
            user_id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            active=user.active,
        ))

    async def create_user(self, data: UserCreate) -> UserResponse:
        """
        Create a user account.

        Raises:
            DuplicateEmailError: the email is taken
            DuplicatePhoneNumberError: the phone number is taken
            DuplicateUsernameError: the username is taken
        """
        await self._check_unique(
            email=data.email,
            phone_number=data.phone_number,
            username=data.username,
        )

        user = User(**data.model_dump(exclude={"role"}), role=data.role.value)
        self.session.add(user)
        await self._commit(user)

        users_written_counter.labels(operation="create").inc()
        logger.info("user_created", user_id=user.id, username=user.username)
        self._publish(user, EventType.USER_CREATED)
        return UserResponse.model_validate(user)

    async def update_user(self, user_id: int, data: UserUpdate) -> UserResponse:
        """
        Apply the fields set in ``data`` to a user.

        Raises:
            UserNotFoundError: no user with ``user_id``
            DuplicateEmailError: the new email belongs to another user
            DuplicatePhoneNumberError: the new phone number belongs to another user
        """
        user = await self._load(user_id)
        changes = data.model_dump(exclude_none=True)
        await self._check_unique(
            email=changes.get("email"),
            phone_number=changes.get("phone_number"),
            exclude_id=user_id,
        )

        for field, value in changes.items():
            setattr(user, field, value)
        await self._commit(user)
        if self.cache is not None:
            await self.cache.evict(USERS, user.id)

        users_written_counter.labels(operation="update").inc()
        logger.info("user_updated", user_id=user.id, fields=sorted(changes))
        self._publish(user, EventType.USER_UPDATED)
        return UserResponse.model_validate(user)

    async def get_user(self, user_id: int) -> UserResponse:
        """
        Raises:
            UserNotFoundError: no user with ``user_id``
        """
        if self.cache is not None:
            cached = await self.cache.get(USERS, user_id, UserResponse)
            if cached is not None:
                return cached

        user = UserResponse.model_validate(await self._load(user_id))
        if self.cache is not None:
            await self.cache.set(USERS, user_id, user)
        return user
