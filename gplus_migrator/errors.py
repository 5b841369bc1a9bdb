"""Exception hierarchy for the Google+ to Discourse migration pipeline."""

from typing import Optional


class MigrationError(Exception):
    """Base exception for migration errors."""
    pass


class ConfigurationError(MigrationError):
    """Missing or incomplete configuration detected before any content is touched."""

    def __init__(self, message: str, template_path: Optional[str] = None):
        super().__init__(message)
        self.template_path = template_path


class CategoryLookupError(MigrationError, LookupError):
    """Referenced category or parent category does not exist in Discourse."""
    pass


class InputFormatError(MigrationError):
    """The export contains a fragment kind or style the renderer does not know."""
    pass


class UnresolvedMentionError(MigrationError):
    """A mention refers to a Google+ user with no Discourse account."""

    def __init__(self, external_id: str, display_name: str):
        super().__init__(
            f"Google user {display_name} (id {external_id}) not imported"
        )
        self.external_id = external_id
        self.display_name = display_name


class MissingMediaError(MigrationError):
    """The manifest points at a local file that no longer exists."""

    def __init__(self, source_url: str, local_path: str):
        super().__init__(f"Media file not found: {local_path} (from {source_url})")
        self.source_url = source_url
        self.local_path = local_path


class UploadFailure(MigrationError):
    """The upload store did not return a usable upload."""

    def __init__(self, source_url: str, reason: str = "no upload id returned"):
        super().__init__(f"Upload failed for {source_url}: {reason}")
        self.source_url = source_url


class DiscourseApiError(MigrationError):
    """A Discourse API request failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    'MigrationError',
    'ConfigurationError',
    'CategoryLookupError',
    'InputFormatError',
    'UnresolvedMentionError',
    'MissingMediaError',
    'UploadFailure',
    'DiscourseApiError',
]
