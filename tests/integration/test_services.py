"""
Service Integration Tests
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from bookstore.core.cache import EntityCache
from bookstore.core.events.schemas import EventType
from bookstore.schemas.book import BookCreate, BookUpdate
from bookstore.schemas.user import UserCreate, UserUpdate
from bookstore.services.books import BookService
from bookstore.services.exceptions import (
    BookNotFoundError,
    DuplicateEmailError,
    DuplicateIsbnError,
    DuplicatePhoneNumberError,
    UserNotFoundError,
)
from bookstore.services.users import UserService


@pytest.fixture
def book_service(test_db, mock_publisher):
    return BookService(test_db, mock_publisher)


@pytest.fixture
def user_service(test_db, mock_publisher):
    return UserService(test_db, mock_publisher)


class TestBookService:
    """Tests for BookService."""

    @pytest.mark.asyncio
    async def test_create_book(self, book_service, mock_publisher, sample_book_data):
        book = await book_service.create_book(BookCreate(**sample_book_data))

        assert book.id is not None
        assert book.isbn == sample_book_data["isbn"]
        assert book.price == Decimal("49.99")
        assert book.active is True

        event = mock_publisher.publish.call_args.args[0]
        assert event.event_type is EventType.BOOK_CREATED
        assert event.book_id == book.id

    @pytest.mark.asyncio
    async def test_duplicate_isbn_rejected(self, book_service, mock_publisher, sample_book_data):
        await book_service.create_book(BookCreate(**sample_book_data))

        with pytest.raises(DuplicateIsbnError):
            await book_service.create_book(BookCreate(**sample_book_data))

        assert mock_publisher.publish.call_count == 1

    @pytest.mark.asyncio
    async def test_update_book_partial(self, book_service, mock_publisher, sample_book_data):
        book = await book_service.create_book(BookCreate(**sample_book_data))

        updated = await book_service.update_book(book.id, BookUpdate(stock_quantity=2))

        assert updated.stock_quantity == 2
        assert updated.title == sample_book_data["title"]
        assert mock_publisher.publish.call_args.args[0].event_type is EventType.BOOK_UPDATED

    @pytest.mark.asyncio
    async def test_update_to_taken_isbn(self, book_service, sample_book_data):
        await book_service.create_book(BookCreate(**sample_book_data))
        other = await book_service.create_book(
            BookCreate(**{**sample_book_data, "isbn": "9780441013593"})
        )

        with pytest.raises(DuplicateIsbnError):
            await book_service.update_book(other.id, BookUpdate(isbn=sample_book_data["isbn"]))

    @pytest.mark.asyncio
    async def test_missing_book(self, book_service):
        with pytest.raises(BookNotFoundError):
            await book_service.get_book(999)
        with pytest.raises(BookNotFoundError):
            await book_service.update_book(999, BookUpdate(title="x"))


class TestUserService:
    """Tests for UserService."""

    @pytest.mark.asyncio
    async def test_create_user(self, user_service, mock_publisher, sample_user_data):
        user = await user_service.create_user(UserCreate(**sample_user_data))

        assert user.id is not None
        assert user.email == sample_user_data["email"]
        assert user.role.value == "customer"
        assert mock_publisher.publish.call_args.args[0].event_type is EventType.USER_CREATED

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, user_service, sample_user_data):
        await user_service.create_user(UserCreate(**sample_user_data))

        with pytest.raises(DuplicateEmailError):
            await user_service.create_user(UserCreate(**{
                **sample_user_data,
                "username": "other",
                "phone_number": "+15550000000",
            }))

    @pytest.mark.asyncio
    async def test_duplicate_phone_rejected(self, user_service, sample_user_data):
        await user_service.create_user(UserCreate(**sample_user_data))

        with pytest.raises(DuplicatePhoneNumberError):
            await user_service.create_user(UserCreate(**{
                **sample_user_data,
                "username": "other",
                "email": "other@example.com",
            }))

    @pytest.mark.asyncio
    async def test_update_user_keeps_own_email(self, user_service, sample_user_data):
        user = await user_service.create_user(UserCreate(**sample_user_data))

        updated = await user_service.update_user(
            user.id,
            UserUpdate(email=sample_user_data["email"], city="Porto"),
        )

        assert updated.city == "Porto"

    @pytest.mark.asyncio
    async def test_missing_user(self, user_service):
        with pytest.raises(UserNotFoundError):
            await user_service.get_user(42)


class TestEntityCaching:
    """Tests for read-through caching in the services."""

    @pytest.fixture
    def cache(self, mock_redis):
        return EntityCache(mock_redis, ttl=300, key_prefix="cache:")

    @pytest.mark.asyncio
    async def test_get_book_fills_cache_on_miss(self, test_db, mock_publisher, mock_redis, cache, sample_book_data):
        books = BookService(test_db, mock_publisher, cache)
        book = await books.create_book(BookCreate(**sample_book_data))

        fetched = await books.get_book(book.id)

        assert fetched == book
        mock_redis.set.assert_called_once_with(f"cache:books:{book.id}", book.model_dump_json(), ex=300)

    @pytest.mark.asyncio
    async def test_get_book_served_from_cache(self, test_db, mock_publisher, mock_redis, cache, sample_book_data):
        """Test that a cached book is returned without touching the database."""
        books = BookService(test_db, mock_publisher, cache)
        book = await books.create_book(BookCreate(**sample_book_data))
        cached = book.model_copy(update={"id": 999})
        mock_redis.get = AsyncMock(return_value=cached.model_dump_json())

        assert await books.get_book(999) == cached
        mock_redis.set.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_book_evicts(self, test_db, mock_publisher, mock_redis, cache, sample_book_data):
        books = BookService(test_db, mock_publisher, cache)
        book = await books.create_book(BookCreate(**sample_book_data))

        await books.update_book(book.id, BookUpdate(stock_quantity=1))

        mock_redis.delete.assert_called_once_with(f"cache:books:{book.id}")

    @pytest.mark.asyncio
    async def test_failed_update_keeps_cache(self, test_db, mock_publisher, mock_redis, cache):
        books = BookService(test_db, mock_publisher, cache)

        with pytest.raises(BookNotFoundError):
            await books.update_book(999, BookUpdate(title="x"))

        mock_redis.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_user_read_through_and_evict(self, test_db, mock_publisher, mock_redis, cache, sample_user_data):
        users = UserService(test_db, mock_publisher, cache)
        user = await users.create_user(UserCreate(**sample_user_data))

        assert await users.get_user(user.id) == user
        await users.update_user(user.id, UserUpdate(city="Porto"))

        mock_redis.set.assert_called_once_with(f"cache:users:{user.id}", user.model_dump_json(), ex=300)
        mock_redis.delete.assert_called_once_with(f"cache:users:{user.id}")
