"""
Discourse-backed implementations of the importer stores.

Discourse has no REST lookup by import id, so the Google+ id of everything
created is recorded in the JSON mapping file kept by ``IdMappingTracker``.
"""

import logging
import re
import secrets
import unicodedata
from typing import Any, Dict, List, Optional

from ..errors import DiscourseApiError
from ..models import (
    ContentDraft,
    CreatedContent,
    CreationRequest,
    StoredContent,
    TargetCategory,
    TargetIdentity,
    UploadedArtifact,
)
from .discourse_client import DiscourseClient
from .id_mapping_tracker import IdMappingTracker
from .stores import CategoryStore, ContentStore, IdentityStore, UploadStore

logger = logging.getLogger('gplus_migrator.importers.discourse_stores')

USERNAME_MAX_LENGTH = 20
USERNAME_MIN_LENGTH = 3


def suggest_username(display_name: str, external_id: str) -> str:
    """
    Derive a Discourse username from a Google+ display name.

    Args:
        display_name: Name shown in the export
        external_id: Google+ id, used when the name has no usable characters

    Returns:
        Username candidate, not yet checked for availability
    """
    normalized = unicodedata.normalize('NFKD', display_name)
    ascii_name = normalized.encode('ascii', 'ignore').decode('ascii')
    username = re.sub(r'[^A-Za-z0-9_.-]+', '_', ascii_name).strip('_.-')
    username = re.sub(r'[_.-]{2,}', '_', username)[:USERNAME_MAX_LENGTH].rstrip('_.-')

    if len(username) < USERNAME_MIN_LENGTH:
        username = f"gplus_{external_id[-8:]}"
    return username


def _target_identity(user: Dict[str, Any]) -> TargetIdentity:
    return TargetIdentity(
        id=user['id'],
        username=user['username'],
        silenced=bool(user.get('silenced_till')),
        suspended=bool(user.get('suspended_till'))
    )


class DiscourseContentStore(ContentStore):
    """Topics and posts created through the Discourse API."""

    def __init__(
        self,
        client: DiscourseClient,
        mappings: IdMappingTracker,
        logger: Optional[logging.Logger] = None
    ):
        self.client = client
        self.mappings = mappings
        self.logger = logger or logging.getLogger('gplus_migrator.importers.discourse_stores')

    def lookup_mapping(self, external_id: str) -> Optional[CreatedContent]:
        mapping = self.mappings.get_post(external_id)
        if mapping is None:
            return None
        return CreatedContent(post_id=mapping['post_id'], topic_id=mapping['topic_id'])

    def create_content(self, draft: ContentDraft) -> CreatedContent:
        """
        Create a topic or reply as the draft's author.

        Raises:
            DiscourseApiError: If Discourse rejects the post
        """
        response = self.client.create_post(
            raw=draft.raw,
            username=draft.author.username,
            created_at=draft.created_at.isoformat(),
            title=draft.title,
            category_id=draft.category_id,
            tags=draft.tags,
            topic_id=draft.topic_id
        )

        if not response.get('id') or not response.get('topic_id'):
            raise DiscourseApiError(f"No post id returned for Google+ item {draft.external_id}")

        created = CreatedContent(post_id=response['id'], topic_id=response['topic_id'])
        self.mappings.add_post_mapping(draft.external_id, created.post_id, created.topic_id)

        kind = "topic" if draft.is_topic else "post"
        self.logger.debug(f"Created {kind} {created.post_id} for Google+ item {draft.external_id}")
        return created

    def fetch(self, post_id: int) -> Optional[StoredContent]:
        post = self.client.get_post(post_id)
        if post is None:
            return None
        return StoredContent(
            id=post['id'],
            topic_id=post['topic_id'],
            raw=post.get('raw') or '',
            user_id=post.get('user_id'),
            deleted=bool(post.get('deleted_at'))
        )

    def update_text(self, post_id: int, raw: str) -> None:
        self.client.update_post(post_id, raw)
        # Discourse keeps the cooked HTML until the post is rebaked
        self.client.rebake_post(post_id)


class DiscourseIdentityStore(IdentityStore):
    """Discourse users associated with Google+ users through the mapping file."""

    SILENCE_REASON = 'Google+ import blacklist'

    def __init__(
        self,
        client: DiscourseClient,
        mappings: IdMappingTracker,
        logger: Optional[logging.Logger] = None
    ):
        self.client = client
        self.mappings = mappings
        self.logger = logger or logging.getLogger('gplus_migrator.importers.discourse_stores')

    def lookup_association(self, external_id: str) -> Optional[TargetIdentity]:
        mapping = self.mappings.get_user(external_id)
        if mapping is None:
            return None

        user = self.client.get_user(mapping['username'])
        if user is None:
            self.logger.warning(
                f"Discourse user {mapping['username']} for Google+ id {external_id} no longer exists"
            )
            return None
        return _target_identity(user)

    def find_by_handle(self, handle: str) -> Optional[TargetIdentity]:
        user = self.client.get_user(handle)
        return _target_identity(user) if user else None

    def create_identity(self, request: CreationRequest) -> TargetIdentity:
        """
        Create an approved user with a placeholder address.

        The user is expected to merge with the account when they later log in
        with Google authentication.

        Raises:
            DiscourseApiError: If Discourse rejects the user
        """
        username = self._available_username(suggest_username(request.display_name, request.external_id))

        response = self.client.create_user(
            name=request.display_name,
            username=username,
            email=request.email,
            password=secrets.token_urlsafe(24)
        )
        if not response.get('success') or not response.get('user_id'):
            raise DiscourseApiError(
                f"Could not create user {username}: {response.get('message', 'unknown error')}"
            )

        user_id = response['user_id']
        if request.silence:
            self.client.silence_user(user_id, self.SILENCE_REASON)

        self.mappings.add_user_mapping(request.external_id, user_id, username)
        self.logger.debug(f"Created user {username} for Google+ id {request.external_id}")
        return TargetIdentity(id=user_id, username=username, silenced=request.silence)

    def _available_username(self, candidate: str) -> str:
        username = candidate
        suffix = 1
        while self.client.get_user(username) is not None:
            suffix += 1
            tail = str(suffix)
            username = candidate[:USERNAME_MAX_LENGTH - len(tail)] + tail
        return username


class DiscourseUploadStore(UploadStore):
    """Composer uploads, attributed to the API user."""

    def __init__(self, client: DiscourseClient, logger: Optional[logging.Logger] = None):
        self.client = client
        self.logger = logger or logging.getLogger('gplus_migrator.importers.discourse_stores')

    def create_upload(self, local_path: str, filename: str) -> Optional[UploadedArtifact]:
        response = self.client.upload_file(local_path, filename)
        if not response or not response.get('url'):
            self.logger.debug(f"Upload of {local_path} returned no URL")
            return None
        return UploadedArtifact(
            id=response.get('id'),
            url=response['url'],
            original_filename=response.get('original_filename') or filename,
            short_url=response.get('short_url')
        )


class DiscourseCategoryStore(CategoryStore):
    """Category lookup by name over the cached category list."""

    def __init__(self, client: DiscourseClient, logger: Optional[logging.Logger] = None):
        self.client = client
        self.logger = logger or logging.getLogger('gplus_migrator.importers.discourse_stores')
        self._categories: Optional[List[TargetCategory]] = None

    def _all(self) -> List[TargetCategory]:
        if self._categories is None:
            self._categories = [
                TargetCategory(
                    id=category['id'],
                    name=category['name'],
                    parent_id=category.get('parent_category_id')
                )
                for category in self.client.list_categories()
            ]
            self.logger.debug(f"Loaded {len(self._categories)} Discourse categories")
        return self._categories

    def find_category(self, name: str, parent_id: Optional[int] = None) -> Optional[TargetCategory]:
        # sub-categories of different parents can share a name
        candidates = [category for category in self._all() if category.name == name]
        for category in candidates:
            if category.parent_id == parent_id:
                return category
        if parent_id is None and candidates:
            return candidates[0]
        return None

    def create_category(self, name: str, parent_id: Optional[int] = None) -> TargetCategory:
        response = self.client.create_category(name, parent_category_id=parent_id)
        category = TargetCategory(id=response['id'], name=response.get('name', name), parent_id=parent_id)
        self._all().append(category)
        self.logger.info(f"Created category {name} (id {category.id})")
        return category


__all__ = [
    'suggest_username',
    'DiscourseContentStore',
    'DiscourseIdentityStore',
    'DiscourseUploadStore',
    'DiscourseCategoryStore',
]
