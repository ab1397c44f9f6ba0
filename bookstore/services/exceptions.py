"""
Service Exceptions

Domain errors raised by the book and user services.
"""


class ServiceError(Exception):
    """Base class for domain errors."""


class BookNotFoundError(ServiceError):
    def __init__(self, book_id: int):
        self.book_id = book_id
        super().__init__(f"Book with id {book_id} not found")


class UserNotFoundError(ServiceError):
    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User with id {user_id} not found")


class DuplicateIsbnError(ServiceError):
    def __init__(self, isbn: str):
        self.isbn = isbn
        super().__init__(f"Book with ISBN {isbn} already exists")


class DuplicateEmailError(ServiceError):
    def __init__(self, email: str):
        self.email = email
        super().__init__(f"User with email {email} already exists")


class DuplicatePhoneNumberError(ServiceError):
    def __init__(self, phone_number: str):
        self.phone_number = phone_number
        super().__init__(f"User with phone number {phone_number} already exists")


class DuplicateUsernameError(ServiceError):
    def __init__(self, username: str):
        self.username = username
        super().__init__(f"User with username {username} already exists")
