"""Rovel error taxonomy."""


class RovelError(Exception):
    """Base error for Rovel operations."""

    def __init__(self, message: str, code: str = "ROVEL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class StoreUnavailable(RovelError):
    """The durable store is not connected or the connection was lost."""

    def __init__(self, reason: str = "Database not available"):
        super().__init__(reason, "STORE_UNAVAILABLE")


class BadInput(RovelError):
    """A required identifier or field is missing or malformed."""

    def __init__(self, fields: list[str], reason: str = "Missing required fields"):
        super().__init__(f"{reason}: {', '.join(fields)}", "BAD_INPUT")
        self.fields = fields


class ContentNotFound(RovelError):
    """Content item does not exist."""

    def __init__(self, content_key: str):
        super().__init__(f"Content not found: {content_key}", "CONTENT_NOT_FOUND")
        self.content_key = content_key


class ChapterNotFound(RovelError):
    """Chapter does not exist."""

    def __init__(self, content_key: str, chapter_id: str):
        super().__init__(
            f"Chapter not found: {content_key}/{chapter_id}",
            "CHAPTER_NOT_FOUND",
        )
        self.content_key = content_key
        self.chapter_id = chapter_id


class ChapterAlreadyExists(RovelError):
    """Chapter id is already taken for this content."""

    def __init__(self, content_id: int, chapter_id: str):
        super().__init__(
            f"Chapter already exists: {content_id}/{chapter_id}",
            "CHAPTER_ALREADY_EXISTS",
        )
        self.content_id = content_id
        self.chapter_id = chapter_id


class ContentAlreadyExists(RovelError):
    """Another content item already uses this normalized title."""

    def __init__(self, normalized_title: str):
        super().__init__(
            f"Content already exists: {normalized_title}",
            "CONTENT_ALREADY_EXISTS",
        )
        self.normalized_title = normalized_title


class UserNotFound(RovelError):
    """User does not exist."""

    def __init__(self, user_id: str):
        super().__init__(f"User not found: {user_id}", "USER_NOT_FOUND")
        self.user_id = user_id


class ImageNotFound(RovelError):
    """Uploaded image does not exist."""

    def __init__(self, image_id: str):
        super().__init__(f"Image not found: {image_id}", "IMAGE_NOT_FOUND")
        self.image_id = image_id


class UploadTooLarge(RovelError):
    """Uploaded payload exceeds the configured limit."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Upload too large ({size} bytes, limit: {limit})",
            "UPLOAD_TOO_LARGE",
        )
        self.size = size
        self.limit = limit
