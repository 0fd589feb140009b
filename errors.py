"""Exceptions raised by the local store.

Lookups that find nothing return None rather than raising. Engine errors that the
store does not translate (``sqlalchemy.exc.SQLAlchemyError``) reach the caller
unchanged.
"""

DUPLICATE_EMAIL_MESSAGE = "This email is already registered."
GENERIC_FAILURE_MESSAGE = "Something went wrong. Please try again."


class StoreError(Exception):
    """Base exception for errors raised by the store itself."""

    pass


class UserAlreadyExistsError(StoreError):
    """Raised when a user is created with an email that is already taken."""

    def __init__(self, email: str):
        """Initialize the exception.

        Args:
            email: The email address that is already registered.
        """
        self.email = email
        super().__init__(f"User with email '{email}' already exists")


class InvalidRatingError(StoreError, ValueError):
    """Raised when a rating dimension is not an integer between 1 and 5."""

    pass


class InvalidMenuError(StoreError, ValueError):
    """Raised when a weekly menu is not exactly five named items."""

    pass


class InvalidRoleError(StoreError, ValueError):
    """Raised when a user role is neither admin nor student."""

    pass


class InvalidPasswordError(StoreError, ValueError):
    """Raised when a password is too long to hash without losing characters."""

    pass


def user_message(exc: Exception) -> str:
    """Turn an error into the text shown to the person using the app."""
    if isinstance(exc, UserAlreadyExistsError):
        return DUPLICATE_EMAIL_MESSAGE
    if isinstance(
        exc, (InvalidRatingError, InvalidMenuError, InvalidRoleError, InvalidPasswordError)
    ):
        return str(exc)
    return GENERIC_FAILURE_MESSAGE
