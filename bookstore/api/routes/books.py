"""
Book Routes

Catalog endpoints. Writes honor the ``Idempotency-Key`` header.
"""

from fastapi import APIRouter, Response, status

from bookstore.api.deps import BookServiceDep, CoordinatorDep, IdempotencyKey, mark_replayed, resolve_key
from bookstore.core.idempotency.codecs import PydanticCodec
from bookstore.core.idempotency.keys import create_book_key, update_key
from bookstore.schemas.book import BookCreate, BookResponse, BookUpdate

router = APIRouter()

book_codec = PydanticCodec(BookResponse)


@router.post("", response_model=BookResponse, status_code=status.HTTP_201_CREATED)
async def create_book(
    book_data: BookCreate,
    response: Response,
    books: BookServiceDep,
    coordinator: CoordinatorDep,
    idempotency_key: IdempotencyKey = None,
) -> BookResponse:
    """
    Create a book.

    Retrying with the same idempotency key returns the book created by the
    first request instead of inserting another one.
    """
    key = resolve_key(idempotency_key, lambda: create_book_key(book_data.isbn))
    outcome = await coordinator.execute(key, lambda: books.create_book(book_data), book_codec)
    mark_replayed(response, outcome)
    return outcome.value


@router.put("/{book_id}", response_model=BookResponse)
async def update_book(
    book_id: int,
    book_data: BookUpdate,
    response: Response,
    books: BookServiceDep,
    coordinator: CoordinatorDep,
    idempotency_key: IdempotencyKey = None,
) -> BookResponse:
    """Update a book. Only fields present in the body are changed."""
    key = resolve_key(
        idempotency_key,
        lambda: update_key("book", book_id, book_data.model_dump(mode="json", exclude_none=True)),
    )
    outcome = await coordinator.execute(key, lambda: books.update_book(book_id, book_data), book_codec)
    mark_replayed(response, outcome)
    return outcome.value


@router.get("/{book_id}", response_model=BookResponse)
async def get_book(book_id: int, books: BookServiceDep) -> BookResponse:
    """Get a book by ID."""
    return await books.get_book(book_id)
