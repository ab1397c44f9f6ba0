"""
User Routes

Account endpoints. Writes honor the ``Idempotency-Key`` header.
"""

from fastapi import APIRouter, Response, status

from bookstore.api.deps import CoordinatorDep, IdempotencyKey, UserServiceDep, mark_replayed, resolve_key
from bookstore.core.idempotency.codecs import PydanticCodec
from bookstore.core.idempotency.keys import create_user_key, update_key
from bookstore.schemas.user import UserCreate, UserResponse, UserUpdate

router = APIRouter()

user_codec = PydanticCodec(UserResponse)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    response: Response,
    users: UserServiceDep,
    coordinator: CoordinatorDep,
    idempotency_key: IdempotencyKey = None,
) -> UserResponse:
    """Create a user account."""
    key = resolve_key(
        idempotency_key,
        lambda: create_user_key(user_data.email, user_data.phone_number),
    )
    outcome = await coordinator.execute(key, lambda: users.create_user(user_data), user_codec)
    mark_replayed(response, outcome)
    return outcome.value


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    user_data: UserUpdate,
    response: Response,
    users: UserServiceDep,
    coordinator: CoordinatorDep,
    idempotency_key: IdempotencyKey = None,
) -> UserResponse:
    """Update a user account. Only fields present in the body are changed."""
    key = resolve_key(
        idempotency_key,
        lambda: update_key("user", user_id, user_data.model_dump(mode="json", exclude_none=True)),
    )
    outcome = await coordinator.execute(key, lambda: users.update_user(user_id, user_data), user_codec)
    mark_replayed(response, outcome)
    return outcome.value


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: int, users: UserServiceDep) -> UserResponse:
    """Get a user by ID."""
    return await users.get_user(user_id)
