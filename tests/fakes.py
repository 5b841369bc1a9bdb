"""In-memory stores and export builders shared by the tests."""

from typing import Any, Dict, List, Optional

from gplus_migrator.config_loader import ImportSettings
from gplus_migrator.converters.fragment_renderer import RunContext
from gplus_migrator.errors import DiscourseApiError
from gplus_migrator.importers.identity_resolver import IdentityResolver
from gplus_migrator.importers.media_cache import MediaCache
from gplus_migrator.importers.stores import CategoryStore, ContentStore, IdentityStore, UploadStore
from gplus_migrator.models import (
    CategoryMapping,
    ContentDraft,
    CreatedContent,
    CreationRequest,
    Feed,
    MediaReference,
    RunMode,
    StoredContent,
    TargetCategory,
    TargetIdentity,
    UploadedArtifact,
)


class FakeContentStore(ContentStore):

    def __init__(self):
        self.mappings: Dict[str, CreatedContent] = {}
        self.posts: Dict[int, Dict[str, Any]] = {}
        self.drafts: List[ContentDraft] = []
        self.updates: List[tuple] = []
        self.fail_on = set()
        self._next_id = 1

    def lookup_mapping(self, external_id):
        return self.mappings.get(external_id)

    def create_content(self, draft):
        if draft.external_id in self.fail_on:
            raise DiscourseApiError(f"POST /posts.json returned 422 for {draft.external_id}", 422)

        post_id = self._next_id
        self._next_id += 1
        topic_id = draft.topic_id if draft.topic_id is not None else 1000 + post_id

        self.drafts.append(draft)
        self.posts[post_id] = {
            'raw': draft.raw,
            'topic_id': topic_id,
            'user_id': draft.author.id,
            'deleted': False
        }
        created = CreatedContent(post_id=post_id, topic_id=topic_id)
        self.mappings[draft.external_id] = created
        return created

    def fetch(self, post_id):
        post = self.posts.get(post_id)
        if post is None:
            return None
        return StoredContent(
            id=post_id,
            topic_id=post['topic_id'],
            raw=post['raw'],
            user_id=post['user_id'],
            deleted=post['deleted']
        )

    def update_text(self, post_id, raw):
        self.posts[post_id]['raw'] = raw
        self.updates.append((post_id, raw))

    def raw_for(self, external_id: str) -> str:
        return self.posts[self.mappings[external_id].post_id]['raw']


class FakeIdentityStore(IdentityStore):

    def __init__(self, associations=None, users=None, fail_on=None):
        self.associations: Dict[str, TargetIdentity] = dict(associations or {})
        self.users: Dict[str, TargetIdentity] = dict(users or {})
        self.created: List[CreationRequest] = []
        self.fail_on = set(fail_on or ())
        self._next_id = 500

    def lookup_association(self, external_id):
        return self.associations.get(external_id)

    def find_by_handle(self, handle):
        return self.users.get(handle)

    def create_identity(self, request):
        if request.external_id in self.fail_on:
            raise DiscourseApiError(f"Could not create user for {request.external_id}", 422)

        self._next_id += 1
        username = request.display_name.lower().replace(' ', '_')
        target = TargetIdentity(id=self._next_id, username=username, silenced=request.silence)
        self.created.append(request)
        self.associations[request.external_id] = target
        self.users[username] = target
        return target


class FakeUploadStore(UploadStore):

    def __init__(self, reject=None, error=None):
        self.calls: List[tuple] = []
        self.reject = set(reject or ())
        self.error = set(error or ())

    def create_upload(self, local_path, filename):
        self.calls.append((local_path, filename))
        if filename in self.error:
            raise DiscourseApiError("POST /uploads.json returned 413", 413)
        if filename in self.reject:
            return UploadedArtifact(id=None, url='', original_filename=filename)
        number = len(self.calls)
        return UploadedArtifact(
            id=number,
            url=f"/uploads/default/original/1X/{filename}",
            original_filename=filename,
            short_url=f"upload://{number}-{filename}"
        )


class FakeCategoryStore(CategoryStore):

    def __init__(self, categories=None):
        self.categories: List[TargetCategory] = list(categories or [])
        self.created: List[TargetCategory] = []

    def find_category(self, name, parent_id=None):
        candidates = [category for category in self.categories if category.name == name]
        for category in candidates:
            if category.parent_id == parent_id:
                return category
        return candidates[0] if parent_id is None and candidates else None

    def create_category(self, name, parent_id=None):
        category = TargetCategory(id=900 + len(self.created), name=name, parent_id=parent_id)
        self.created.append(category)
        self.categories.append(category)
        return category


# Export builders

def text(value: str, style: Optional[Dict[str, bool]] = None) -> list:
    return [0, value, style] if style is not None else [0, value]


def line_break() -> list:
    return [1, '']


def link(display_text: str, url: Optional[str] = None) -> list:
    return [2, display_text, url]


def mention(name: str, external_id: Optional[str]) -> list:
    return [3, name, external_id]


def hashtag(value: str) -> list:
    return [4, value]


def post_dict(
    post_id: str,
    message: Optional[list] = None,
    author_id: str = '100',
    author_name: str = 'Alice Example',
    created_at: str = '2018-03-04T05:06:07Z',
    comments: Optional[list] = None,
    **attachments
) -> Dict[str, Any]:
    data = {
        'id': post_id,
        'author': {'id': author_id, 'name': author_name},
        'createdAt': created_at,
        'message': message or [],
        'comments': comments or []
    }
    data.update(attachments)
    return data


def feed_dict(posts: list, category_id: str = 'cat-1', category_name: str = 'General') -> Dict[str, Any]:
    return {
        'accounts': [{
            'id': 'acct-1',
            'name': 'Makers Owner',
            'communities': [{
                'id': 'comm-1',
                'name': 'Makers',
                'categories': [{
                    'id': category_id,
                    'name': category_name,
                    'posts': posts
                }]
            }]
        }]
    }


def make_feed(posts: list, **kwargs) -> Feed:
    return Feed.from_dict(feed_dict(posts, **kwargs), source='test.json')


def media_reference(url: str, local_path: str, size: int = 10) -> MediaReference:
    filename = local_path.rsplit('/', 1)[-1]
    return MediaReference(source_url=url, local_path=local_path, size_bytes=size, filename=filename)


def make_context(
    mode: RunMode = RunMode.IMPORT,
    identity_store: Optional[FakeIdentityStore] = None,
    upload_store: Optional[FakeUploadStore] = None,
    references: Optional[Dict[str, MediaReference]] = None,
    overrides: Optional[Dict[str, Optional[str]]] = None,
    blacklist=None,
    dry_run: bool = False,
    settings: Optional[ImportSettings] = None
) -> RunContext:
    resolver = IdentityResolver(
        identity_store if identity_store is not None else FakeIdentityStore(),
        mode,
        overrides=overrides,
        blacklist=blacklist,
        dry_run=dry_run
    )
    media = MediaCache(
        references or {},
        upload_store if upload_store is not None else FakeUploadStore(),
        dry_run=dry_run
    )
    return RunContext(
        mode=mode,
        resolver=resolver,
        media=media,
        settings=settings or ImportSettings(site_base_url='https://forum.example.com'),
        dry_run=dry_run
    )


def category_mappings(category_id: str = 'cat-1', tags=None) -> Dict[str, CategoryMapping]:
    return {
        category_id: CategoryMapping(
            external_id=category_id,
            name='General',
            target_name='Google+ Archive',
            tags=list(tags or []),
            target=TargetCategory(id=7, name='Google+ Archive')
        )
    }
