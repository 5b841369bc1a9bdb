"""Topic titles for Google+ posts, which have none."""

import logging
from typing import List, Optional

from dateutil import tz

from ..config_loader import ImportSettings
from ..models import ContentNode, Fragment, Link, Mention, PlainText
from .fragment_renderer import clean_text

logger = logging.getLogger('gplus_migrator.converters.title_synthesizer')

FULL_STOP = ('.',)
SOFT_STOPS = (',', ';', ':', '?')


def message_words(fragments: List[Fragment]) -> List[str]:
    """Words of the message without markup; a link contributes its display text as one word."""
    words: List[str] = []
    for fragment in fragments:
        if isinstance(fragment, PlainText):
            words.extend(clean_text(fragment.text).split())
        elif isinstance(fragment, Mention):
            words.extend(fragment.display_name.split())
        elif isinstance(fragment, Link):
            words.append(fragment.display_text)
    return words


class TitleSynthesizer:
    """Builds a title from the opening words of a post."""

    def __init__(self, settings: ImportSettings, logger: Optional[logging.Logger] = None):
        self.settings = settings
        self.logger = logger or logging.getLogger('gplus_migrator.converters.title_synthesizer')

    def synthesize(self, node: ContentNode) -> str:
        if not node.has_message:
            # probably just an image and/or album
            return self.untitled(node)
        return self.title_text(node)

    def title_text(self, node: ContentNode) -> str:
        settings = self.settings
        words = message_words(node.fragments)

        # short posts rarely make good titles, and Discourse has a minimum length
        too_short = (
            not words
            or len(''.join(words)) < settings.min_title_characters
            or len(words) < settings.min_title_words
        )
        if too_short:
            return self.untitled(node)

        words = words[:settings.max_title_words]

        last_word = self._last_word_ending_with(words, FULL_STOP)
        if last_word is None:
            last_word = self._last_word_ending_with(words, SOFT_STOPS)
        if last_word is not None:
            words = words[:last_word + 1]

        # hard cut, not word-aware
        return ' '.join(words)[:settings.max_title_length]

    def _last_word_ending_with(self, words: List[str], endings) -> Optional[int]:
        """Index of the last word ending in one of ``endings``, ignoring the first ``min_title_words`` words."""
        last = None
        for index in range(self.settings.min_title_words, len(words)):
            if words[index].endswith(endings):
                last = index
        return last

    def untitled(self, node: ContentNode) -> str:
        created_at = node.created_at.astimezone(tz.tzutc()).strftime('%Y-%m-%d %H:%M:%S UTC')
        return f"{self.settings.source_label} post by {node.author_name} on {created_at}"


__all__ = ['TitleSynthesizer', 'message_words']
