"""Data models for the Google+ to Discourse migration pipeline."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from dateutil import tz
from dateutil.parser import isoparse

from .errors import InputFormatError

logger = logging.getLogger('gplus_migrator')


class RunMode(Enum):
    """Run modes of the migrator."""
    IMPORT = "import"
    UPDATE = "update"


class FragmentKind(Enum):
    """Fragment kind codes used by the Friends+Me Google+ Exporter."""
    TEXT = 0
    LINE_BREAK = 1
    LINK = 2
    MENTION = 3
    HASHTAG = 4


# ---------------------------------------------------------------------------
# Message fragments
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StyleFlags:
    """Inline styles attached to a text fragment."""

    italic: bool = False
    bold: bool = False
    strikethrough: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> 'StyleFlags':
        """Build style flags, rejecting any style the exporter does not define."""
        if not isinstance(data, dict):
            raise InputFormatError(f"markdown code {data!r} not recognized")

        known = ('italic', 'bold', 'strikethrough')
        unknown = sorted(key for key, value in data.items() if value and key not in known)
        if unknown:
            raise InputFormatError(f"markdown code {data!r} not recognized")

        return cls(
            italic=bool(data.get('italic')),
            bold=bool(data.get('bold')),
            strikethrough=bool(data.get('strikethrough'))
        )

    @property
    def is_plain(self) -> bool:
        return not (self.italic or self.bold or self.strikethrough)


@dataclass(frozen=True)
class PlainText:
    text: str
    style: Optional[StyleFlags] = None


@dataclass(frozen=True)
class LineBreak:
    pass


@dataclass(frozen=True)
class Link:
    url: str
    display_text: str


@dataclass(frozen=True)
class Mention:
    """Reference to a Google+ user; deleted users have no external id."""
    external_id: Optional[str]
    display_name: str


@dataclass(frozen=True)
class Hashtag:
    """Hashtag text, octothorpe included."""
    text: str


Fragment = Union[PlainText, LineBreak, Link, Mention, Hashtag]


def parse_fragment(raw: Any) -> Fragment:
    """
    Convert one ``[kind, text, extra]`` triple from the export into a fragment.

    Args:
        raw: Fragment triple as found in a message array

    Returns:
        Typed fragment

    Raises:
        InputFormatError: If the kind or style is not part of the export vocabulary
    """
    if not isinstance(raw, (list, tuple)) or not raw:
        raise InputFormatError(f"message fragment {raw!r} not recognized!")

    try:
        kind = FragmentKind(raw[0])
    except ValueError:
        raise InputFormatError(f"message code {raw[0]!r} not recognized!")

    text = raw[1] if len(raw) > 1 and raw[1] is not None else ''
    extra = raw[2] if len(raw) > 2 else None

    if kind is FragmentKind.TEXT:
        style = StyleFlags.from_dict(extra) if extra is not None else None
        return PlainText(text=text, style=style)
    if kind is FragmentKind.LINE_BREAK:
        return LineBreak()
    if kind is FragmentKind.LINK:
        return Link(url=extra if extra is not None else text, display_text=text)
    if kind is FragmentKind.MENTION:
        return Mention(
            external_id=str(extra) if extra is not None else None,
            display_name=text
        )
    return Hashtag(text=text)


# ---------------------------------------------------------------------------
# Content nodes and feed tree
# ---------------------------------------------------------------------------

def _media_url(value: Any) -> Optional[str]:
    """Exporter media objects carry their URL under ``proxy``."""
    if isinstance(value, dict):
        value = value.get('proxy') or value.get('url')
    if isinstance(value, str) and value:
        return value
    return None


@dataclass
class Attachments:
    """Block-level media attached to a post or comment."""

    image: Optional[str] = None
    images: List[str] = field(default_factory=list)
    video: Optional[str] = None
    videos: List[str] = field(default_factory=list)
    link: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Attachments':
        link = data.get('link')
        return cls(
            image=_media_url(data.get('image')),
            images=[url for url in map(_media_url, data.get('images') or []) if url],
            video=_media_url(data.get('video')),
            videos=[url for url in map(_media_url, data.get('videos') or []) if url],
            link=_media_url(link) if isinstance(link, dict) else None
        )


def parse_timestamp(value: str) -> datetime:
    """Parse an exporter timestamp, assuming UTC when no offset is given."""
    parsed = isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz.tzutc())
    return parsed


@dataclass
class ContentNode:
    """A Google+ post (top-level) or comment (child)."""

    external_id: str
    author_id: str
    author_name: str
    created_at: datetime
    fragments: List[Fragment] = field(default_factory=list)
    attachments: Attachments = field(default_factory=Attachments)
    category_id: Optional[str] = None
    parent_id: Optional[str] = None
    comments: List['ContentNode'] = field(default_factory=list)

    @property
    def has_message(self) -> bool:
        return bool(self.fragments)

    @property
    def is_top_level(self) -> bool:
        return self.parent_id is None

    def mentions(self) -> Iterator[Mention]:
        for fragment in self.fragments:
            if isinstance(fragment, Mention):
                yield fragment

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        category_id: Optional[str] = None,
        parent_id: Optional[str] = None
    ) -> 'ContentNode':
        """Build a node (and, for posts, its comments) from exporter JSON."""
        author = data.get('author') or {}
        if data.get('id') is None or author.get('id') is None:
            raise InputFormatError(f"post or comment without id/author: {data.get('id')!r}")

        node = cls(
            external_id=str(data['id']),
            author_id=str(author['id']),
            author_name=author.get('name') or '',
            created_at=parse_timestamp(data['createdAt']),
            fragments=[parse_fragment(raw) for raw in data.get('message') or []],
            attachments=Attachments.from_dict(data),
            category_id=category_id,
            parent_id=parent_id
        )

        if parent_id is None:
            node.comments = [
                cls.from_dict(comment, parent_id=node.external_id)
                for comment in data.get('comments') or []
            ]

        return node


@dataclass
class FeedCategory:
    id: str
    name: str
    posts: List[ContentNode] = field(default_factory=list)


@dataclass
class Community:
    id: str
    name: str
    categories: List[FeedCategory] = field(default_factory=list)


@dataclass
class Account:
    id: str
    name: str
    communities: List[Community] = field(default_factory=list)


@dataclass
class Feed:
    """One exporter JSON file: accounts, communities, categories and posts."""

    accounts: List[Account] = field(default_factory=list)
    source: Optional[str] = None

    def iter_categories(self) -> Iterator[Tuple[Community, FeedCategory]]:
        for account in self.accounts:
            for community in account.communities:
                for category in community.categories:
                    yield community, category

    def iter_posts(self) -> Iterator[Tuple[FeedCategory, ContentNode]]:
        for _, category in self.iter_categories():
            for post in category.posts:
                yield category, post

    def get_statistics(self) -> Dict[str, int]:
        posts = 0
        comments = 0
        for _, post in self.iter_posts():
            posts += 1
            comments += len(post.comments)
        return {
            'accounts': len(self.accounts),
            'categories': sum(1 for _ in self.iter_categories()),
            'posts': posts,
            'comments': comments
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: Optional[str] = None) -> 'Feed':
        """Deserialize an exporter feed."""
        feed = cls(source=source)

        for account_data in data.get('accounts', []):
            account = Account(
                id=str(account_data.get('id', '')),
                name=account_data.get('name', '')
            )
            for community_data in account_data.get('communities', []):
                community = Community(
                    id=str(community_data.get('id', '')),
                    name=community_data.get('name', '')
                )
                for category_data in community_data.get('categories', []):
                    category_id = str(category_data['id'])
                    category = FeedCategory(
                        id=category_id,
                        name=category_data.get('name', ''),
                        posts=[
                            ContentNode.from_dict(post, category_id=category_id)
                            for post in category_data.get('posts', [])
                        ]
                    )
                    community.categories.append(category)
                account.communities.append(community)
            feed.accounts.append(account)

        return feed


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------

class IdentityState(Enum):
    """Resolution state of a Google+ user for the current run."""
    UNRESOLVED = "unresolved"
    LINKED = "linked"
    NEWLY_CREATED = "newly_created"
    BLACKLISTED = "blacklisted"
    INVALID = "invalid"
    PROTECTED = "protected"


@dataclass(frozen=True)
class TargetIdentity:
    """A Discourse user."""
    id: int
    username: str
    silenced: bool = False
    suspended: bool = False


@dataclass
class ExternalIdentity:
    """A Google+ user and what it resolved to."""

    external_id: str
    display_name: str
    state: IdentityState = IdentityState.UNRESOLVED
    target: Optional[TargetIdentity] = None
    override_handle: Optional[str] = None
    blacklisted: bool = False

    @property
    def handle(self) -> Optional[str]:
        if self.target is not None:
            return self.target.username
        return self.override_handle


@dataclass(frozen=True)
class CreationRequest:
    """Deferred request to create a Discourse user for a Google+ user."""
    external_id: str
    display_name: str
    email: str
    silence: bool = False


# ---------------------------------------------------------------------------
# Media
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MediaReference:
    """A manifest row: a source URL and where the exporter downloaded it."""
    source_url: str
    local_path: str
    size_bytes: int
    filename: str
    downloaded: bool = True


@dataclass(frozen=True)
class UploadedArtifact:
    """An upload that exists in Discourse."""
    id: Optional[int]
    url: str
    original_filename: str
    short_url: Optional[str] = None

    @property
    def embed_url(self) -> str:
        return self.short_url or self.url


@dataclass
class RenderedContent:
    """Rendered post text and the media files first uploaded while rendering it."""
    text: str
    media_paths: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Categories and content store records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TargetCategory:
    id: int
    name: str
    parent_id: Optional[int] = None


@dataclass
class CategoryMapping:
    """How one Google+ category maps to a Discourse category and tags."""

    external_id: str
    name: str
    target_name: str = ''
    community: Optional[str] = None
    parent_name: Optional[str] = None
    auto_create: bool = False
    tags: List[str] = field(default_factory=list)
    target: Optional[TargetCategory] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.target_name)

    @classmethod
    def from_dict(cls, external_id: str, data: Dict[str, Any]) -> 'CategoryMapping':
        return cls(
            external_id=external_id,
            name=data.get('name') or '',
            target_name=data.get('category') or '',
            community=data.get('community'),
            parent_name=data.get('parent') or None,
            auto_create=bool(data.get('create', False)),
            tags=list(data.get('tags') or [])
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'name': self.name,
            'community': self.community,
            'category': self.target_name,
            'parent': self.parent_name,
            'tags': list(self.tags)
        }
        if self.auto_create:
            data['create'] = True
        return data


@dataclass
class ContentDraft:
    """A topic (with title and category) or a reply (with topic id) to create."""

    external_id: str
    author: TargetIdentity
    raw: str
    created_at: datetime
    title: Optional[str] = None
    category_id: Optional[int] = None
    tags: List[str] = field(default_factory=list)
    topic_id: Optional[int] = None

    @property
    def is_topic(self) -> bool:
        return self.topic_id is None


@dataclass(frozen=True)
class CreatedContent:
    post_id: int
    topic_id: int


@dataclass(frozen=True)
class StoredContent:
    """Current state of an imported post in Discourse."""
    id: int
    topic_id: int
    raw: str
    user_id: Optional[int] = None
    deleted: bool = False


# ---------------------------------------------------------------------------
# Run statistics
# ---------------------------------------------------------------------------

@dataclass
class RunStats:
    """Counters for one run; topics are Google+ posts, posts are comments."""

    mode: RunMode
    dry_run: bool = False
    topics_created: int = 0
    posts_created: int = 0
    topics_updated: int = 0
    posts_updated: int = 0
    topics_unchanged: int = 0
    posts_unchanged: int = 0
    topics_skipped: int = 0
    posts_skipped: int = 0
    topics_blacklisted: int = 0
    posts_blacklisted: int = 0
    topics_failed: int = 0
    posts_failed: int = 0
    uploaded_bytes: int = 0
    invalid_identities: List[Tuple[str, str]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    cancelled: bool = False

    def count(self, level: str, outcome: str) -> None:
        """Increment ``<level>_<outcome>``, e.g. ``count('topics', 'skipped')``."""
        name = f"{level}_{outcome}"
        setattr(self, name, getattr(self, name) + 1)

    def progress_line(self) -> str:
        if self.mode is RunMode.UPDATE:
            return (
                f"Updated: {self.topics_updated}/{self.posts_updated} topics/posts; "
                f"unchanged: {self.topics_unchanged}/{self.posts_unchanged}; "
                f"new skipped: {self.topics_skipped}/{self.posts_skipped}"
            )
        return (
            f"{self.topics_created}/{self.posts_created} topics/posts "
            f"(skipped: {self.topics_skipped}/{self.posts_skipped} "
            f"blacklisted: {self.topics_blacklisted}/{self.posts_blacklisted})"
        )

    def to_summary(self) -> Dict[str, Any]:
        if self.mode is RunMode.UPDATE:
            summary = {
                'topics_updated': self.topics_updated,
                'posts_updated': self.posts_updated,
                'total_updated': self.topics_updated + self.posts_updated,
                'topics_unchanged': self.topics_unchanged,
                'posts_unchanged': self.posts_unchanged,
                'total_unchanged': self.topics_unchanged + self.posts_unchanged,
            }
        else:
            summary = {
                'topics_created': self.topics_created,
                'posts_created': self.posts_created,
                'total_created': self.topics_created + self.posts_created,
                'topics_blacklisted': self.topics_blacklisted,
                'posts_blacklisted': self.posts_blacklisted,
                'total_blacklisted': self.topics_blacklisted + self.posts_blacklisted,
                'uploaded_bytes': self.uploaded_bytes,
            }
        summary.update({
            'topics_skipped': self.topics_skipped,
            'posts_skipped': self.posts_skipped,
            'total_skipped': self.topics_skipped + self.posts_skipped,
            'topics_failed': self.topics_failed,
            'posts_failed': self.posts_failed,
            'total_failed': self.topics_failed + self.posts_failed,
        })
        return summary


__all__ = [
    'RunMode',
    'FragmentKind',
    'StyleFlags',
    'PlainText',
    'LineBreak',
    'Link',
    'Mention',
    'Hashtag',
    'Fragment',
    'parse_fragment',
    'parse_timestamp',
    'Attachments',
    'ContentNode',
    'FeedCategory',
    'Community',
    'Account',
    'Feed',
    'IdentityState',
    'TargetIdentity',
    'ExternalIdentity',
    'CreationRequest',
    'MediaReference',
    'UploadedArtifact',
    'RenderedContent',
    'TargetCategory',
    'CategoryMapping',
    'ContentDraft',
    'CreatedContent',
    'StoredContent',
    'RunStats',
]
