"""Import package for Google+ to Discourse migration.

This package provides the collaborators the renderer and driver work
against, and their Discourse implementations.

Package Structure:
- stores: abstract content, identity, upload and category stores
- identity_resolver: resolves Google+ users and creates missing ones
- media_cache: uploads downloaded media at most once per run
- category_mapper: checks categories.json and maps it to Discourse categories
- discourse_client: REST API client for Discourse
- discourse_stores: Discourse-backed store implementations
- id_mapping_tracker: persisted Google+ to Discourse id mappings
"""

from .stores import CategoryStore, ContentStore, IdentityStore, UploadStore
from .identity_resolver import IdentityResolver
from .media_cache import MediaCache
from .category_mapper import CategoryMapper
from .discourse_client import DiscourseClient
from .discourse_stores import (
    DiscourseCategoryStore,
    DiscourseContentStore,
    DiscourseIdentityStore,
    DiscourseUploadStore,
)
from .id_mapping_tracker import IdMappingTracker

__all__ = [
    'ContentStore',
    'IdentityStore',
    'UploadStore',
    'CategoryStore',
    'IdentityResolver',
    'MediaCache',
    'CategoryMapper',
    'DiscourseClient',
    'DiscourseContentStore',
    'DiscourseIdentityStore',
    'DiscourseUploadStore',
    'DiscourseCategoryStore',
    'IdMappingTracker'
]
