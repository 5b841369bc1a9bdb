"""Tests for topic titles made up from the opening words of a post."""

import unittest

from gplus_migrator.config_loader import ImportSettings
from gplus_migrator.converters.title_synthesizer import TitleSynthesizer, message_words
from gplus_migrator.models import ContentNode
from tests.fakes import hashtag, link, mention, post_dict, text

FALLBACK = 'Google+ post by Alice Example on 2018-03-04 05:06:07 UTC'


def node(message):
    return ContentNode.from_dict(post_dict('p1', message), category_id='cat-1')


class TestTitleSynthesizer(unittest.TestCase):

    def setUp(self):
        self.titles = TitleSynthesizer(ImportSettings())

    def test_question_mark_is_last_soft_stop(self):
        """Test the window keeps everything up to the last qualifying punctuation."""
        title = self.titles.synthesize(node([text('Hi there, how are you doing today?')]))
        self.assertEqual(title, 'Hi there, how are you doing today?')

    def test_full_stop_preferred_over_comma(self):
        title = self.titles.synthesize(node([
            text('This is a sentence. And then more words, here we go on')
        ]))
        self.assertEqual(title, 'This is a sentence.')

    def test_comma_used_without_full_stop(self):
        title = self.titles.synthesize(node([
            text('Some words come first, then others come after')
        ]))
        self.assertEqual(title, 'Some words come first,')

    def test_punctuation_before_min_words_ignored(self):
        title = self.titles.synthesize(node([text('Well. This is something else entirely')]))
        self.assertEqual(title, 'Well. This is something else entirely')

    def test_single_word_falls_back(self):
        self.assertEqual(self.titles.synthesize(node([text('Hi')])), FALLBACK)

    def test_too_few_characters_falls_back(self):
        self.assertEqual(self.titles.synthesize(node([text('a b c d')])), FALLBACK)

    def test_no_message_falls_back(self):
        self.assertEqual(self.titles.synthesize(node([])), FALLBACK)

    def test_window_limited_to_max_words(self):
        words = [f'word{i}' for i in range(20)]
        title = self.titles.synthesize(node([text(' '.join(words))]))
        self.assertEqual(title, ' '.join(words[:14]))

    def test_hard_length_cut(self):
        titles = TitleSynthesizer(ImportSettings(max_title_length=20))
        title = titles.synthesize(node([text('Extraordinarily verbose opening statement here')]))
        self.assertEqual(title, 'Extraordinarily verb')

    def test_custom_source_label(self):
        titles = TitleSynthesizer(ImportSettings(source_label='G+'))
        self.assertTrue(titles.synthesize(node([])).startswith('G+ post by Alice Example'))

    def test_message_words(self):
        """Test mentions contribute their name, links their display text, hashtags nothing."""
        words = message_words(node([
            text('Thanks'),
            mention('Bob Smith', '200'),
            link('the write-up', 'https://example.com/'),
            hashtag('#woodworking')
        ]).fragments)
        self.assertEqual(words, ['Thanks', 'Bob', 'Smith', 'the write-up'])


if __name__ == '__main__':
    unittest.main()
