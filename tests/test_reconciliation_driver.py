"""Tests for the import and update passes over a Google+ feed."""

import io
import os
import tempfile
import threading
import unittest

from gplus_migrator.errors import UnresolvedMentionError
from gplus_migrator.models import RunMode
from gplus_migrator.orchestrator.reconciliation_driver import ReconciliationDriver
from tests.fakes import (
    FakeContentStore,
    FakeIdentityStore,
    category_mappings,
    make_context,
    make_feed,
    media_reference,
    mention,
    post_dict,
    text,
)

PHOTO_URL = 'https://lh3.googleusercontent.com/photo'
SCAN_URL = 'https://lh3.googleusercontent.com/scan'


def welcome_comment(comment_id='c1', **kwargs):
    return post_dict(comment_id, [text('Welcome aboard, Alice!')],
                     author_id='200', author_name='Bob', **kwargs)


def first_post(comments=None, **kwargs):
    return post_dict(
        'p1',
        [text('Hello everyone, this is my first post here.')],
        comments=[welcome_comment()] if comments is None else comments,
        **kwargs
    )


class DriverTestCase(unittest.TestCase):

    def setUp(self):
        self.content = FakeContentStore()
        self.identities = FakeIdentityStore()
        self.manifest = io.StringIO()

    def run_driver(self, posts, mode=RunMode.IMPORT, cancel_event=None, **context_kwargs):
        context = make_context(mode=mode, identity_store=self.identities, **context_kwargs)
        self.manifest = io.StringIO()
        driver = ReconciliationDriver(
            context,
            self.content,
            category_mappings(tags=['makers']),
            upload_manifest=self.manifest,
            cancel_event=cancel_event
        )
        return driver.run([make_feed(posts)])


class TestImportMode(DriverTestCase):

    def test_creates_topic_and_reply(self):
        stats = self.run_driver([first_post()])

        self.assertEqual((stats.topics_created, stats.posts_created), (1, 1))
        topic, reply = self.content.drafts
        self.assertEqual(topic.title, 'Hello everyone, this is my first post here.')
        self.assertEqual(topic.category_id, 7)
        self.assertEqual(topic.tags, ['gplus', 'makers'])
        self.assertEqual(topic.author.username, 'alice_example')
        self.assertIsNone(topic.topic_id)
        self.assertEqual(reply.topic_id, self.content.mappings['p1'].topic_id)
        self.assertIsNone(reply.title)

    def test_second_import_skips_everything(self):
        self.run_driver([first_post()])
        stats = self.run_driver([first_post()])

        self.assertEqual((stats.topics_skipped, stats.posts_skipped), (1, 1))
        self.assertEqual((stats.topics_created, stats.posts_created), (0, 0))
        self.assertEqual(len(self.content.drafts), 2)

    def test_new_comment_on_imported_topic(self):
        """Test an already imported post still gets its new comments attached."""
        self.run_driver([first_post(comments=[])])
        stats = self.run_driver([first_post()])

        self.assertEqual(stats.topics_skipped, 1)
        self.assertEqual(stats.posts_created, 1)
        self.assertEqual(self.content.drafts[-1].topic_id, self.content.mappings['p1'].topic_id)

    def test_blacklisted_author_creates_nothing(self):
        stats = self.run_driver([first_post()], blacklist={'100'})

        self.assertEqual(stats.topics_blacklisted, 1)
        self.assertEqual(stats.topics_created, 0)
        # comments of a blacklisted post are not evaluated
        self.assertEqual((stats.posts_created, stats.posts_blacklisted, stats.posts_skipped), (0, 0, 0))
        self.assertEqual(self.content.drafts, [])

    def test_blacklisted_commenter(self):
        stats = self.run_driver([first_post()], blacklist={'200'})
        self.assertEqual((stats.topics_created, stats.posts_blacklisted), (1, 1))

    def test_short_post_counted_as_blacklisted(self):
        stats = self.run_driver([post_dict('p1', [text('hi')])])
        self.assertEqual(stats.topics_blacklisted, 1)
        self.assertEqual(self.content.drafts, [])

    def test_protected_author_skipped(self):
        stats = self.run_driver([first_post()], overrides={'100': None})
        self.assertEqual(stats.topics_skipped, 1)
        self.assertEqual(self.content.drafts, [])

    def test_failure_isolated_to_one_post(self):
        self.content.fail_on.add('p1')
        stats = self.run_driver([
            first_post(),
            post_dict('p2', [text('Another long enough post for the forum.')])
        ])

        self.assertEqual(stats.topics_failed, 1)
        self.assertEqual(stats.topics_created, 1)
        self.assertEqual(stats.posts_created, 0)
        self.assertEqual(stats.errors[0]['external_id'], 'p1')

    def test_unresolved_mention_aborts(self):
        self.identities.fail_on.add('500')
        with self.assertRaises(UnresolvedMentionError):
            self.run_driver([post_dict('p1', [text('Thanks to '), mention('Dan', '500')])])

    def test_dry_run_creates_nothing(self):
        stats = self.run_driver([first_post()], dry_run=True)

        self.assertEqual((stats.topics_created, stats.posts_created), (1, 1))
        self.assertEqual(self.content.drafts, [])
        self.assertEqual(self.identities.created, [])

    def test_cancelled_before_first_post(self):
        event = threading.Event()
        event.set()
        stats = self.run_driver([first_post()], cancel_event=event)

        self.assertTrue(stats.cancelled)
        self.assertEqual(self.content.drafts, [])

    def test_identical_inputs_identical_output(self):
        posts = [first_post(), post_dict('p2', [text('Second post, with some words in it.')])]
        first_stats = self.run_driver(posts)
        first_raws = [draft.raw for draft in self.content.drafts]

        self.content = FakeContentStore()
        self.identities = FakeIdentityStore()
        second_stats = self.run_driver(posts)

        self.assertEqual([draft.raw for draft in self.content.drafts], first_raws)
        self.assertEqual(first_stats.to_summary(), second_stats.to_summary())


class TestUploadManifest(DriverTestCase):

    def setUp(self):
        super().setUp()
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        self.photo = self.write_file('photo.jpg')
        self.scan = self.write_file('scan.png')
        self.references = {
            PHOTO_URL: media_reference(PHOTO_URL, self.photo),
            SCAN_URL: media_reference(SCAN_URL, self.scan)
        }

    def write_file(self, name):
        path = os.path.join(self.tmpdir.name, name)
        with open(path, 'wb') as f:
            f.write(b'0123456789')
        return path

    def posts(self):
        return [first_post(
            comments=[welcome_comment(image={'proxy': SCAN_URL})],
            image={'proxy': PHOTO_URL}
        )]

    def test_created_nodes_write_their_paths(self):
        stats = self.run_driver(self.posts(), references=self.references)

        self.assertEqual(self.manifest.getvalue(), f"{self.photo}\n{self.scan}\n")
        self.assertEqual(stats.uploaded_bytes, 20)

    def test_reused_upload_listed_for_later_node(self):
        """Test a node embedding an upload made for a failed node still lists the file."""
        self.content.fail_on.add('p1')
        posts = [
            first_post(comments=[], image={'proxy': PHOTO_URL}),
            post_dict('p2', [text('Another post sharing the same photo.')], image={'proxy': PHOTO_URL})
        ]
        stats = self.run_driver(posts, references=self.references)

        self.assertEqual((stats.topics_created, stats.topics_failed), (1, 1))
        self.assertIn('upload://1-photo.jpg', self.content.raw_for('p2'))
        self.assertEqual(self.manifest.getvalue(), f"{self.photo}\n")

    def test_shared_file_listed_per_node(self):
        posts = [first_post(
            comments=[welcome_comment(image={'proxy': PHOTO_URL})],
            image={'proxy': PHOTO_URL}
        )]
        stats = self.run_driver(posts, references=self.references)

        self.assertEqual(self.manifest.getvalue(), f"{self.photo}\n{self.photo}\n")
        self.assertEqual(stats.uploaded_bytes, 10)

    def test_dry_run_update_ignores_upload_urls(self):
        self.run_driver(self.posts(), references=self.references)
        stats = self.run_driver(self.posts(), mode=RunMode.UPDATE, references=self.references, dry_run=True)

        self.assertEqual((stats.topics_unchanged, stats.posts_unchanged), (1, 1))
        self.assertEqual(stats.topics_updated + stats.posts_updated, 0)

    def test_blacklisted_node_writes_nothing(self):
        self.run_driver(self.posts(), references=self.references, blacklist={'200'})
        self.assertEqual(self.manifest.getvalue(), f"{self.photo}\n")

    def test_update_writes_only_changed_nodes(self):
        self.run_driver(self.posts(), references=self.references)
        comment_post = self.content.mappings['c1'].post_id
        self.content.posts[comment_post]['raw'] = 'outdated rendering'

        stats = self.run_driver(self.posts(), mode=RunMode.UPDATE, references=self.references)

        self.assertEqual((stats.topics_unchanged, stats.posts_updated), (1, 1))
        self.assertEqual(self.manifest.getvalue(), f"{self.scan}\n")


class TestUpdateMode(DriverTestCase):

    def setUp(self):
        super().setUp()
        self.run_driver([first_post()])

    def outdate(self, external_id, raw='outdated rendering'):
        self.content.posts[self.content.mappings[external_id].post_id]['raw'] = raw

    def test_unchanged_content_not_rewritten(self):
        stats = self.run_driver([first_post()], mode=RunMode.UPDATE)

        self.assertEqual((stats.topics_unchanged, stats.posts_unchanged), (1, 1))
        self.assertEqual(self.content.updates, [])

    def test_whitespace_differences_ignored(self):
        self.outdate('p1', '  Hello everyone, this is my first post here.\n')
        stats = self.run_driver([first_post()], mode=RunMode.UPDATE)
        self.assertEqual(stats.topics_unchanged, 1)

    def test_changed_rendering_updated_once(self):
        """Test a second consecutive update run changes nothing."""
        self.outdate('p1')
        first = self.run_driver([first_post()], mode=RunMode.UPDATE)
        second = self.run_driver([first_post()], mode=RunMode.UPDATE)

        self.assertEqual(first.topics_updated, 1)
        self.assertEqual(self.content.raw_for('p1'), 'Hello everyone, this is my first post here.')
        self.assertEqual((second.topics_updated, second.posts_updated), (0, 0))
        self.assertEqual(len(self.content.updates), 1)

    def test_soft_deleted_never_modified(self):
        self.outdate('p1')
        self.content.posts[self.content.mappings['p1'].post_id]['deleted'] = True

        stats = self.run_driver([first_post()], mode=RunMode.UPDATE)

        self.assertEqual(stats.topics_updated, 0)
        self.assertEqual(self.content.raw_for('p1'), 'outdated rendering')

    def test_protected_author_never_modified(self):
        self.outdate('p1')
        stats = self.run_driver([first_post()], mode=RunMode.UPDATE, overrides={'100': None})

        self.assertEqual(stats.topics_updated, 0)
        self.assertEqual(self.content.updates, [])

    def test_never_imported_skipped(self):
        stats = self.run_driver(
            [first_post(comments=[welcome_comment(), welcome_comment('c9')])],
            mode=RunMode.UPDATE
        )
        self.assertEqual(stats.posts_skipped, 1)
        self.assertEqual(len(self.content.drafts), 2)

    def test_unmapped_users_reported(self):
        stats = self.run_driver(
            [first_post(comments=[post_dict('c5', [text('Hello from a stranger')],
                                            author_id='300', author_name='Carol')])],
            mode=RunMode.UPDATE
        )
        self.assertEqual(stats.invalid_identities, [('300', 'Carol')])

    def test_dry_run_counts_without_writing(self):
        self.outdate('p1')
        stats = self.run_driver([first_post()], mode=RunMode.UPDATE, dry_run=True)

        self.assertEqual(stats.topics_updated, 1)
        self.assertEqual(self.content.raw_for('p1'), 'outdated rendering')


if __name__ == '__main__':
    unittest.main()
