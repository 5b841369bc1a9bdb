"""
Reconciliation driver walking the Google+ feed tree into Discourse.

A Google+ post becomes a Discourse topic and a Google+ comment becomes a
Discourse post. Import mode creates what has no id mapping yet. Update mode
re-renders what was imported earlier and rewrites it only when the rendering
changed, so running it twice in a row changes nothing the second time.
"""

import logging
import re
import threading
from typing import Dict, Iterable, List, Optional, TextIO, Tuple

from tqdm import tqdm

from ..converters.fragment_renderer import FragmentRenderer, RunContext
from ..converters.title_synthesizer import TitleSynthesizer
from ..errors import DiscourseApiError
from ..importers.stores import ContentStore
from ..models import (
    CategoryMapping,
    ContentDraft,
    ContentNode,
    CreatedContent,
    Feed,
    FeedCategory,
    IdentityState,
    RunMode,
    RunStats,
)

logger = logging.getLogger('gplus_migrator.orchestrator.reconciliation_driver')

TOPICS = 'topics'
POSTS = 'posts'

IMAGE_EMBED_PATTERN = re.compile(r'!\[([^\]]*)\]\([^)]*\)')


class ReconciliationDriver:
    """Applies the import or update strategy to every post and comment."""

    def __init__(
        self,
        context: RunContext,
        content_store: Optional[ContentStore],
        categories: Dict[str, CategoryMapping],
        upload_manifest: Optional[TextIO] = None,
        show_progress: bool = False,
        cancel_event: Optional[threading.Event] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the driver.

        Args:
            context: Mode, resolver, media cache and settings shared by all renders
            content_store: Discourse topics and posts (may be None in import dry-run)
            categories: Resolved category mappings keyed by Google+ category id
            upload_manifest: Open file receiving paths of uploaded media
            show_progress: Show a tqdm progress bar over top-level posts
            cancel_event: Checked between top-level posts to stop the run early
            logger: Logger instance
        """
        self.context = context
        self.content_store = content_store
        self.categories = categories
        self.upload_manifest = upload_manifest
        self.show_progress = show_progress
        self.cancel_event = cancel_event
        self.logger = logger or logging.getLogger('gplus_migrator.orchestrator.reconciliation_driver')

        self.renderer = FragmentRenderer(context, logger=self.logger.getChild('renderer'))
        self.titles = TitleSynthesizer(context.settings)
        self.stats = RunStats(mode=context.mode, dry_run=context.dry_run)

    @property
    def mode(self) -> RunMode:
        return self.context.mode

    def run(self, feeds: Iterable[Feed]) -> RunStats:
        """
        Resolve users, then create or update every post and comment.

        Args:
            feeds: Fully loaded feeds, processed in the given order

        Returns:
            Counters for the run

        Raises:
            InputFormatError: For a fragment outside the exporter vocabulary
            UnresolvedMentionError: In import mode, for a mention of a user that was not created
        """
        feeds = list(feeds)
        resolver = self.context.resolver

        resolver.scan(feeds)
        if self.mode is RunMode.IMPORT:
            resolver.commit()

        posts: List[Tuple[FeedCategory, ContentNode]] = [
            item for feed in feeds for item in feed.iter_posts()
        ]
        verb = "Importing" if self.mode is RunMode.IMPORT else "Updating"
        self.logger.info(f"{verb} {len(posts)} Google+ posts and their comments...")

        progress = tqdm(posts, desc=f"{verb} posts", unit="post") if self.show_progress else None
        try:
            for category, post in (progress if progress is not None else posts):
                if self.cancel_event is not None and self.cancel_event.is_set():
                    self.logger.warning("Cancellation requested, stopping before next post")
                    self.stats.cancelled = True
                    break

                if self.mode is RunMode.IMPORT:
                    self.import_topic(post, category)
                else:
                    self.update_topic(post)

                if progress is not None:
                    progress.set_postfix_str(self.stats.progress_line(), refresh=False)
        finally:
            if progress is not None:
                progress.close()

        self.stats.uploaded_bytes = self.context.media.uploaded_bytes
        self.stats.invalid_identities = resolver.invalid_identities()
        self.logger.info(self.stats.progress_line())
        return self.stats

    # Import mode

    def import_topic(self, post: ContentNode, category: FeedCategory) -> None:
        """Create a topic for a post unless already imported, then import its comments."""
        parent = self.content_store.lookup_mapping(post.external_id) if self.content_store else None

        if parent is not None:
            # already imported topic; might need to attach more comments
            self.stats.count(TOPICS, 'skipped')
        else:
            outcome, parent = self._guarded(TOPICS, post, lambda: self._create(post, TOPICS, category, None))
            if outcome != 'created':
                return

        for comment in post.comments:
            if self.content_store is not None and self.content_store.lookup_mapping(comment.external_id):
                self.stats.count(POSTS, 'skipped')
                continue
            self._guarded(POSTS, comment, lambda: self._create(comment, POSTS, None, parent))

    def _create(
        self,
        node: ContentNode,
        level: str,
        category: Optional[FeedCategory],
        parent: Optional[CreatedContent]
    ) -> Tuple[str, Optional[CreatedContent]]:
        resolver = self.context.resolver
        settings = self.context.settings

        author = resolver.resolve(node.author_id, node.author_name)
        if author.blacklisted:
            self.stats.count(level, 'blacklisted')
            return 'blacklisted', None

        if author.state is IdentityState.PROTECTED:
            self.logger.debug(f"Skipping {node.external_id}: author {node.author_id} is protected")
            self.stats.count(level, 'skipped')
            return 'skipped', None

        rendered = self.renderer.render(node)
        # if no message, image, or images, it's just empty
        if len(rendered.text) < settings.min_post_characters:
            self.stats.count(level, 'blacklisted')
            return 'blacklisted', None

        title = None
        category_id = None
        tags: List[str] = []
        if level == TOPICS:
            mapping = self.categories[category.id]
            title = self.titles.synthesize(node)
            category_id = mapping.target.id if mapping.target is not None else None
            tags = list(settings.global_tags) + list(mapping.tags)

        if self.context.dry_run:
            self.logger.info(f"[DRY RUN] Would create {level[:-1]} for {node.external_id}: {title or ''}")
            self.stats.count(level, 'created')
            return 'created', None

        if author.target is None:
            self._record_failure(level, node, f"no Discourse user for author {node.author_id}")
            return 'failed', None

        draft = ContentDraft(
            external_id=node.external_id,
            author=author.target,
            raw=rendered.text,
            created_at=node.created_at,
            title=title,
            category_id=category_id,
            tags=tags,
            topic_id=parent.topic_id if parent is not None else None
        )
        created = self.content_store.create_content(draft)
        self._write_manifest(rendered.media_paths)
        self.stats.count(level, 'created')
        return 'created', created

    # Update mode

    def update_topic(self, post: ContentNode) -> None:
        """Update a post's topic and each comment's post against their own mappings."""
        self._guarded(TOPICS, post, lambda: self._update(post, TOPICS))
        for comment in post.comments:
            self._guarded(POSTS, comment, lambda: self._update(comment, POSTS))

    def _update(self, node: ContentNode, level: str) -> Tuple[str, None]:
        mapping = self.content_store.lookup_mapping(node.external_id)
        if mapping is None:
            # cannot reconcile what was never imported
            self.stats.count(level, 'skipped')
            return 'skipped', None

        stored = self.content_store.fetch(mapping.post_id)
        if stored is None or stored.deleted or self.context.resolver.is_protected(node.author_id):
            self.stats.count(level, 'unchanged')
            return 'unchanged', None

        rendered = self.renderer.render(node)
        if self._same_text(stored.raw, rendered.text):
            self.stats.count(level, 'unchanged')
            return 'unchanged', None

        if self.context.dry_run:
            self.logger.info(f"[DRY RUN] Would update post {stored.id} for {node.external_id}")
        else:
            self.content_store.update_text(stored.id, rendered.text)
            self._write_manifest(rendered.media_paths)
        self.stats.count(level, 'updated')
        return 'updated', None

    # Helpers

    def _same_text(self, stored: str, rendered: str) -> bool:
        if self.context.dry_run:
            # preview uploads embed the source URL, not the Discourse upload URL
            stored = IMAGE_EMBED_PATTERN.sub(r'![\1]()', stored)
            rendered = IMAGE_EMBED_PATTERN.sub(r'![\1]()', rendered)
        return stored.strip() == rendered.strip()

    def _guarded(self, level: str, node: ContentNode, action) -> Tuple[str, Optional[CreatedContent]]:
        """Run a per-node action, isolating Discourse failures to that node."""
        try:
            return action()
        except DiscourseApiError as e:
            self.context.media.discard_pending()
            self._record_failure(level, node, str(e))
            return 'failed', None

    def _record_failure(self, level: str, node: ContentNode, reason: str) -> None:
        self.logger.error(f"Failed to process Google+ item {node.external_id}: {reason}")
        self.stats.count(level, 'failed')
        self.stats.errors.append({
            'external_id': node.external_id,
            'level': level,
            'error': reason
        })

    def _write_manifest(self, paths: List[str]) -> None:
        if self.upload_manifest is None or not paths:
            return
        for path in paths:
            self.upload_manifest.write(f"{path}\n")
        self.upload_manifest.flush()


__all__ = ['ReconciliationDriver']
