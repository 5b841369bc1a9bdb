"""Abstract interfaces for the Discourse-side collaborators of the importer."""

from abc import ABC, abstractmethod
from typing import Optional

from ..models import (
    ContentDraft,
    CreatedContent,
    CreationRequest,
    StoredContent,
    TargetCategory,
    TargetIdentity,
    UploadedArtifact,
)


class ContentStore(ABC):
    """Topics and posts, addressed by the Google+ id they were imported from."""

    @abstractmethod
    def lookup_mapping(self, external_id: str) -> Optional[CreatedContent]:
        """
        Find the post a Google+ post or comment was imported as.

        Args:
            external_id: Google+ post or comment id

        Returns:
            Post and topic ids, or None if never imported
        """
        pass

    @abstractmethod
    def create_content(self, draft: ContentDraft) -> CreatedContent:
        """Create a topic (draft without topic id) or a reply, recording the id mapping."""
        pass

    @abstractmethod
    def fetch(self, post_id: int) -> Optional[StoredContent]:
        """Fetch the current raw text and deletion state of a post."""
        pass

    @abstractmethod
    def update_text(self, post_id: int, raw: str) -> None:
        """Overwrite the raw text of a post and drop its cached rendering."""
        pass


class IdentityStore(ABC):
    """Discourse users and their association with Google+ ids."""

    @abstractmethod
    def lookup_association(self, external_id: str) -> Optional[TargetIdentity]:
        pass

    @abstractmethod
    def find_by_handle(self, handle: str) -> Optional[TargetIdentity]:
        pass

    @abstractmethod
    def create_identity(self, request: CreationRequest) -> TargetIdentity:
        """Create a user, silencing it if requested, and record the association."""
        pass


class UploadStore(ABC):

    @abstractmethod
    def create_upload(self, local_path: str, filename: str) -> Optional[UploadedArtifact]:
        """
        Upload a local file.

        Returns:
            The upload, or None (or an upload without id) if Discourse rejected it
        """
        pass


class CategoryStore(ABC):

    @abstractmethod
    def find_category(self, name: str, parent_id: Optional[int] = None) -> Optional[TargetCategory]:
        """Find a category by name; sub-categories are told apart by parent."""
        pass

    @abstractmethod
    def create_category(self, name: str, parent_id: Optional[int] = None) -> TargetCategory:
        pass


__all__ = ['ContentStore', 'IdentityStore', 'UploadStore', 'CategoryStore']
