"""Tests for reading exporter files and operator maps."""

import json
import os
import tempfile
import unittest

from gplus_migrator.errors import ConfigurationError
from gplus_migrator.loaders import (
    InputFiles,
    load_blacklist,
    load_categories,
    load_feed,
    load_media_manifest,
    load_usermap,
)
from tests.fakes import feed_dict, post_dict


class TestInputFiles(unittest.TestCase):

    def test_classify_by_name(self):
        files = InputFiles.classify([
            'makers.json', 'google-plus-image-list.csv', 'categories.json',
            'usermap.json', 'blacklist.json', 'upload-paths.txt',
            'update-summary.json', 'more.json'
        ])

        self.assertEqual(files.feeds, ['makers.json', 'more.json'])
        self.assertEqual(files.media_manifest, 'google-plus-image-list.csv')
        self.assertEqual(files.categories, 'categories.json')
        self.assertEqual(files.usermap, 'usermap.json')
        self.assertEqual(files.blacklist, 'blacklist.json')
        self.assertEqual(files.upload_paths, 'upload-paths.txt')
        self.assertEqual(files.summary, 'update-summary.json')

    def test_unknown_file_rejected(self):
        with self.assertRaises(ConfigurationError):
            InputFiles.classify(['notes.txt'])


class TestLoaders(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)

    def write(self, name, content):
        path = os.path.join(self.tmpdir.name, name)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content if isinstance(content, str) else json.dumps(content))
        return path

    def test_media_manifest(self):
        path = self.write('images.csv', (
            '"URL";"IsDownloaded";"FileName";"FilePath";"FileSize"\n'
            '"https://lh3/a";"true";"a.jpg";"/data/a.jpg";"1234"\n'
            '"https://lh3/b";"false";"b.jpg";"/data/b.jpg";""\n'
        ))
        references = load_media_manifest(path)

        self.assertEqual(references['https://lh3/a'].local_path, '/data/a.jpg')
        self.assertEqual(references['https://lh3/a'].size_bytes, 1234)
        self.assertEqual(references['https://lh3/b'].size_bytes, 0)
        self.assertFalse(references['https://lh3/b'].downloaded)

    def test_blacklist_ids_are_strings(self):
        path = self.write('blacklist.json', [92310293874, '12378491235293'])
        self.assertEqual(load_blacklist(path), {'92310293874', '12378491235293'})

    def test_usermap_keeps_null(self):
        path = self.write('usermap.json', {'123': 'alice', '456': None})
        self.assertEqual(load_usermap(path), {'123': 'alice', '456': None})

    def test_categories(self):
        path = self.write('categories.json', {'cat-1': {'name': 'General', 'category': 'Archive'}})
        self.assertEqual(load_categories(path)['cat-1'].target_name, 'Archive')

    def test_feed(self):
        path = self.write('makers.json', feed_dict([post_dict('p1')]))
        feed = load_feed(path)
        self.assertEqual(feed.source, path)
        self.assertEqual(feed.get_statistics()['posts'], 1)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_blacklist(os.path.join(self.tmpdir.name, 'blacklist.json'))


if __name__ == '__main__':
    unittest.main()
