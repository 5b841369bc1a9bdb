"""Tests for the persisted Google+ to Discourse id mappings."""

import json
import os
import tempfile
import unittest
from unittest import mock

from gplus_migrator.importers.id_mapping_tracker import IdMappingTracker


class TestIdMappingTracker(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        self.path = os.path.join(self.tmpdir.name, 'gplus-mappings.json')

    def test_missing_file_starts_empty(self):
        tracker = IdMappingTracker.load(self.path)
        self.assertEqual(tracker.get_statistics(), {'total_posts': 0, 'total_users': 0})
        self.assertFalse(os.path.exists(self.path))

    def test_mappings_survive_reload(self):
        tracker = IdMappingTracker.load(self.path)
        tracker.add_post_mapping('p1', 10, 20)
        tracker.add_user_mapping('100', 501, 'alice')
        tracker.save()

        reloaded = IdMappingTracker.load(self.path)
        self.assertEqual(reloaded.get_post('p1'), {'post_id': 10, 'topic_id': 20})
        self.assertEqual(reloaded.get_user('100'), {'user_id': 501, 'username': 'alice'})
        self.assertIsNone(reloaded.get_post('p2'))
        self.assertFalse(os.path.exists(f"{self.path}.tmp"))

    def test_file_written_once_per_interval(self):
        tracker = IdMappingTracker.load(self.path, save_interval=10)
        with mock.patch.object(tracker, 'save', wraps=tracker.save) as save:
            for number in range(25):
                tracker.add_post_mapping(f"p{number}", number, number)

        self.assertEqual(save.call_count, 2)
        self.assertTrue(tracker.dirty)
        self.assertEqual(IdMappingTracker.load(self.path).get_statistics()['total_posts'], 20)

        tracker.save()
        self.assertFalse(tracker.dirty)
        self.assertEqual(IdMappingTracker.load(self.path).get_statistics()['total_posts'], 25)

    def test_rejects_non_object(self):
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump([1, 2], f)
        with self.assertRaises(ValueError):
            IdMappingTracker.load(self.path)

    def test_in_memory_tracker_never_writes(self):
        tracker = IdMappingTracker()
        tracker.add_post_mapping('p1', 10, 20)
        self.assertEqual(tracker.get_post('p1')['topic_id'], 20)
        self.assertEqual(os.listdir(self.tmpdir.name), [])


if __name__ == '__main__':
    unittest.main()
