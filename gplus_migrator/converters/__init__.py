"""Converters package turning Google+ message fragments into Discourse post text and titles."""

from .fragment_renderer import FragmentRenderer, RunContext, clean_text
from .title_synthesizer import TitleSynthesizer, message_words

__all__ = [
    'FragmentRenderer',
    'RunContext',
    'clean_text',
    'TitleSynthesizer',
    'message_words'
]
