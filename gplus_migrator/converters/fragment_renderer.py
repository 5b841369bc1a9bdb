"""
Renderer from Google+ message fragments to Discourse post text.

Markdown does not nest reliably the same way as Google+ markup or what users
intended in Google+, so inline styles are emitted as HTML tags.

Style policy: styles are applied cumulatively, italic innermost, then bold,
then strikethrough. A style key the exporter does not define is rejected when
the fragment is parsed.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Set

from ..config_loader import ImportSettings
from ..errors import InputFormatError, MissingMediaError, UnresolvedMentionError, UploadFailure
from ..importers.identity_resolver import IdentityResolver
from ..importers.media_cache import MediaCache
from ..models import (
    Attachments,
    ContentNode,
    Fragment,
    Hashtag,
    IdentityState,
    LineBreak,
    Link,
    Mention,
    PlainText,
    RenderedContent,
    RunMode,
    UploadedArtifact,
)

logger = logging.getLogger('gplus_migrator.converters.fragment_renderer')

VIDEO_EXTENSION_PATTERN = re.compile(r'\.(mov|mp4|webm|ogv)$', re.IGNORECASE)
# zero-width joiners break @name recognition after plus-references
STRIPPED_CHARACTERS_PATTERN = re.compile('[\u200d\u0080]')


@dataclass
class RunContext:
    """Everything a render may consult; the caches are the only state shared between posts."""

    mode: RunMode
    resolver: IdentityResolver
    media: MediaCache
    settings: ImportSettings
    dry_run: bool = False


def clean_text(text: str) -> str:
    """Drop zero-width joiners and stray 0x80 characters, and turn non-breaking spaces into spaces."""
    return STRIPPED_CHARACTERS_PATTERN.sub('', text).replace('\u00a0', ' ')


class FragmentRenderer:
    """Renders a post or comment, fragments first and then its block attachments."""

    def __init__(self, context: RunContext, logger: Optional[logging.Logger] = None):
        self.context = context
        self.logger = logger or logging.getLogger('gplus_migrator.converters.fragment_renderer')

    def render(self, node: ContentNode) -> RenderedContent:
        """
        Render a content node.

        Args:
            node: Post or comment to render

        Returns:
            Text plus the media files first uploaded during this render

        Raises:
            InputFormatError: For a fragment outside the exporter vocabulary
            UnresolvedMentionError: In import mode, for a mention of an unknown user
        """
        media = self.context.media
        media.discard_pending()

        urls_seen: Set[str] = set()
        parts = [self.render_fragment(fragment, urls_seen) for fragment in node.fragments]
        parts.extend(self._render_attachments(node.attachments, urls_seen))

        return RenderedContent(text=''.join(parts), media_paths=media.take_pending())

    def render_fragment(self, fragment: Fragment, urls_seen: Set[str]) -> str:
        if isinstance(fragment, PlainText):
            return self._render_text(fragment)
        if isinstance(fragment, LineBreak):
            return "\n"
        if isinstance(fragment, Link):
            urls_seen.add(fragment.url)
            return self.resolve_link_text(fragment.url, fragment.display_text)
        if isinstance(fragment, Mention):
            return self._render_mention(fragment)
        if isinstance(fragment, Hashtag):
            # the octothorpe is already part of the text
            return fragment.text
        raise InputFormatError(f"message fragment {fragment!r} not recognized!")

    def _render_text(self, fragment: PlainText) -> str:
        text = clean_text(fragment.text)
        style = fragment.style
        if style is None or style.is_plain:
            return text

        if style.italic:
            text = f"<i>{text}</i>"
        if style.bold:
            text = f"<b>{text}</b>"
        if style.strikethrough:
            # s more likely than del to represent user intent
            text = f"<s>{text}</s>"
        return text

    def _render_mention(self, mention: Mention) -> str:
        if mention.external_id is None:
            # deleted Google+ users show up with a null id
            return self.literal_mention(mention.display_name)

        identity = self.context.resolver.resolve_mention(mention)
        if identity.handle:
            # Google+ often omits the space after a mention
            return f"@{identity.handle} "

        fatal = (
            self.context.mode is RunMode.IMPORT
            and not self.context.dry_run
            and identity.state is not IdentityState.PROTECTED
        )
        if fatal:
            raise UnresolvedMentionError(mention.external_id, mention.display_name)

        self.logger.debug(
            f"No Discourse user for {mention.display_name} (id {mention.external_id})"
        )
        return self.literal_mention(mention.display_name)

    @staticmethod
    def literal_mention(display_name: str) -> str:
        return f"<b>+{display_name}</b>"

    def resolve_link_text(self, url: str, text: str) -> str:
        """
        Render a link, embedding it when it points at downloaded media.

        Args:
            url: Link target from the export
            text: Display text from the export

        Returns:
            Embedded upload, missing-media placeholder, or the bare URL
        """
        media = self.context.media

        if media.knows(text):
            # the exporter puts the URL it actually downloaded in the text slot
            url = text

        if media.knows(url):
            try:
                artifact = media.materialize(url)
            except (MissingMediaError, UploadFailure) as e:
                self.logger.info(f"Using placeholder for media: {e}")
                return self.context.settings.missing_media_text
            return "\n" + self.embed(artifact)

        # Custom display text is Google's own interpolation, which renders
        # poorly in Discourse; the bare URL is used in its place.
        return url

    def embed(self, artifact: UploadedArtifact) -> str:
        """Inline video URL for video files, image markdown for everything else."""
        is_video = (
            VIDEO_EXTENSION_PATTERN.search(artifact.original_filename or '')
            or VIDEO_EXTENSION_PATTERN.search(artifact.embed_url)
        )
        if is_video:
            if re.match(r'https?://', artifact.url):
                return artifact.url
            return self.context.settings.site_base_url + artifact.url
        return f"![{artifact.original_filename}]({artifact.embed_url})"

    def _render_attachments(self, attachments: Attachments, urls_seen: Set[str]) -> List[str]:
        parts = []

        # with both, the image is the cover image of the video
        if attachments.video:
            parts.append(self._block(attachments.video))
        elif attachments.image:
            parts.append(self._block(attachments.image))

        for image in attachments.images:
            parts.append(self._block(image))
        for video in attachments.videos:
            parts.append(self._block(video))

        # the attached link usually repeats a link from the message
        if attachments.link and attachments.link not in urls_seen:
            parts.append(f"\n{attachments.link}\n")
            urls_seen.add(attachments.link)

        return parts

    def _block(self, url: str) -> str:
        return f"\n{self.resolve_link_text(url, url)}\n"


__all__ = ['RunContext', 'FragmentRenderer', 'clean_text']
