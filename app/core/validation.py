"""
Form rules checked before anything is sent to the gateway.
Each check raises InvalidInputError naming the offending field.
"""
from app.errors import InvalidInputError

MIN_USERNAME_LENGTH = 3
MAX_BIO_LENGTH = 160
MIN_INTERESTS = 3
MIN_PASSWORD_LENGTH = 8
MAX_AVATAR_BYTES = 1024 * 1024


def validate_username(username: str | None) -> str:
    value = (username or "").strip()
    if len(value) < MIN_USERNAME_LENGTH:
        raise InvalidInputError(
            f"Username must be at least {MIN_USERNAME_LENGTH} characters",
            field="username",
        )
    return value


def validate_bio(bio: str | None) -> str | None:
    if bio is not None and len(bio) > MAX_BIO_LENGTH:
        raise InvalidInputError(
            f"Bio must be at most {MAX_BIO_LENGTH} characters", field="bio"
        )
    return bio


def validate_interests(hobby_ids) -> list[str]:
    selected = list(dict.fromkeys(hobby_ids or []))
    if len(selected) < MIN_INTERESTS:
        raise InvalidInputError(
            f"Select at least {MIN_INTERESTS} interests", field="hobby_ids"
        )
    return selected


def validate_password(password: str, confirm_password: str) -> None:
    if password != confirm_password:
        raise InvalidInputError("Passwords do not match", field="confirm_password")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInputError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            field="password",
        )


def validate_avatar(content_type: str | None, size: int) -> None:
    if not (content_type or "").startswith("image/"):
        raise InvalidInputError("File must be an image", field="file")
    if size > MAX_AVATAR_BYTES:
        raise InvalidInputError("File size must not exceed 1MB", field="file")
