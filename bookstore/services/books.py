"""
Book Service

Catalog writes and lookups.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookstore.core.cache import BOOKS, EntityCache
from bookstore.core.events.publisher import EventPublisher
from bookstore.core.events.schemas import BookEvent, EventType
from bookstore.db.models.book import Book
from bookstore.monitoring.logging import get_logger
from bookstore.monitoring.metrics import books_written_counter
from bookstore.schemas.book import BookCreate, BookResponse, BookUpdate
from bookstore.services.exceptions import BookNotFoundError, DuplicateIsbnError

logger = get_logger(__name__)


class BookService:
    """
    Book catalog service.

    Every successful write commits, evicts the cached copy, then publishes a
    book event. Results are returned as response schemas so they can be
    stored and replayed verbatim. Lookups read through the entity cache when
    one is configured.
    """

    def __init__(
        self,
        session: AsyncSession,
        publisher: EventPublisher,
        cache: Optional[EntityCache] = None,
    ):
        self.session = session
        self.publisher = publisher
        self.cache = cache

    async def _find_by_isbn(self, isbn: str) -> Optional[Book]:
        result = await self.session.execute(select(Book).where(Book.isbn == isbn))
        return result.scalar_one_or_none()

    async def _load(self, book_id: int) -> Book:
        book = await self.session.get(Book, book_id)
        if book is None:
            raise BookNotFoundError(book_id)
        return book

    async def _commit(self, book: Book) -> None:
        try:
            await self.session.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent insert of the same ISBN
            await self.session.rollback()
            raise DuplicateIsbnError(book.isbn) from e
        await self.session.refresh(book)

    def _publish(self, book: Book, event_type: EventType) -> None:
        self.publisher.publish(BookEvent(
            event_type=event_type,
            book_id=book.id,
            title=book.title,
            author=book.author,
            isbn=book.isbn,
            stock_quantity=book.stock_quantity,
        ))

    async def create_book(self, data: BookCreate) -> BookResponse:
        """
        Create a book.

        Raises:
            DuplicateIsbnError: a book with the same ISBN exists
        """
        if await self._find_by_isbn(data.isbn) is not None:
            raise DuplicateIsbnError(data.isbn)

        book = Book(**data.model_dump())
        self.session.add(book)
        await self._commit(book)

        books_written_counter.labels(operation="create").inc()
        logger.info("book_created", book_id=book.id, isbn=book.isbn)
        self._publish(book, EventType.BOOK_CREATED)
        return BookResponse.model_validate(book)

    async def update_book(self, book_id: int, data: BookUpdate) -> BookResponse:
        """
        Apply the fields set in ``data`` to a book.

        Raises:
            BookNotFoundError: no book with ``book_id``
            DuplicateIsbnError: the new ISBN belongs to another book
        """
        book = await self._load(book_id)
        changes = data.model_dump(exclude_none=True)

        new_isbn = changes.get("isbn")
        if new_isbn and new_isbn != book.isbn:
            if await self._find_by_isbn(new_isbn) is not None:
                raise DuplicateIsbnError(new_isbn)

        for field, value in changes.items():
            setattr(book, field, value)
        await self._commit(book)
        if self.cache is not None:
            await self.cache.evict(BOOKS, book.id)

        books_written_counter.labels(operation="update").inc()
        logger.info("book_updated", book_id=book.id, fields=sorted(changes))
        self._publish(book, EventType.BOOK_UPDATED)
        return BookResponse.model_validate(book)

    async def get_book(self, book_id: int) -> BookResponse:
        """
        Raises:
            BookNotFoundError: no book with ``book_id``
        """
        if self.cache is not None:
            cached = await self.cache.get(BOOKS, book_id, BookResponse)
            if cached is not None:
                return cached

        book = BookResponse.model_validate(await self._load(book_id))
        if self.cache is not None:
            await self.cache.set(BOOKS, book_id, book)
        return book
