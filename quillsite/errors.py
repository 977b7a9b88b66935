from __future__ import annotations


class QuillsiteError(Exception):
    """Base error for the publishing pipeline."""


class SanitizationInputError(QuillsiteError):
    """An HTML fragment could not be sanitized."""


class RenderError(QuillsiteError):
    def __init__(self, artifact: str, message: str = "") -> None:
        self.artifact = artifact
        detail = f": {message}" if message else ""
        super().__init__(f"Failed to render {artifact}{detail}")


class RegenerationDispatchError(QuillsiteError):
    """The regeneration job queue did not accept a job."""


class ContentValidationError(QuillsiteError):
    record = "Record"

    def __init__(self, errors: dict[str, list[str]]) -> None:
        self.errors = errors
        parts = [f"{field} {message}" for field, messages in errors.items() for message in messages]
        super().__init__(f"{self.record} is invalid: " + "; ".join(parts))


class PostValidationError(ContentValidationError):
    record = "Post"


class SiteConfigValidationError(ContentValidationError):
    record = "Site configuration"


class ContentStoreError(QuillsiteError):
    """The content store file could not be read."""


class PostNotFoundError(QuillsiteError):
    pass


class SiteConfigExistsError(QuillsiteError):
    """Only one site configuration is allowed."""


class InvalidBaseURLError(QuillsiteError):
    pass


class OutputDirectoryError(QuillsiteError):
    """The output directory is not safe to replace."""
