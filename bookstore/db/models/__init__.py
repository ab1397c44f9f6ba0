"""Database Models Package"""

from bookstore.db.models.book import Book
from bookstore.db.models.user import User, UserRole
from bookstore.db.models.idempotency import IdempotencyRecordRow

__all__ = [
    "Book",
    "User",
    "UserRole",
    "IdempotencyRecordRow",
]
