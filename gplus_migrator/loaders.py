"""Readers for the Friends+Me Google+ Exporter files and the operator-maintained maps.

Every file is fully loaded into memory before any content is processed.
"""

import csv
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set

from .errors import ConfigurationError
from .models import CategoryMapping, Feed, MediaReference

logger = logging.getLogger('gplus_migrator.loaders')


@dataclass
class InputFiles:
    """Command-line files sorted by role, based on their names."""

    feeds: List[str] = field(default_factory=list)
    media_manifest: Optional[str] = None
    categories: Optional[str] = None
    usermap: Optional[str] = None
    blacklist: Optional[str] = None
    upload_paths: Optional[str] = None
    summary: Optional[str] = None

    @classmethod
    def classify(cls, paths: Sequence[str]) -> 'InputFiles':
        """
        Sort file arguments by suffix the way the exporter tooling names them.

        Raises:
            ConfigurationError: For a file whose role cannot be determined
        """
        files = cls()
        for path in paths:
            if path.endswith('.csv'):
                files.media_manifest = path
            elif path.endswith('upload-paths.txt'):
                files.upload_paths = path
            elif path.endswith('summary.json'):
                files.summary = path
            elif path.endswith('categories.json'):
                files.categories = path
            elif path.endswith('usermap.json'):
                files.usermap = path
            elif path.endswith('blacklist.json'):
                files.blacklist = path
            elif path.endswith('.json'):
                files.feeds.append(path)
            else:
                raise ConfigurationError(f"unknown argument {path}")
        return files


def load_json_file(path: str) -> Any:
    """Load a JSON file, failing with a clear message if it is absent."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"File {path} not found")
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def load_feed(path: str) -> Feed:
    """Load one exporter JSON file into a feed tree."""
    feed = Feed.from_dict(load_json_file(path), source=path)
    stats = feed.get_statistics()
    logger.info(
        f"Loaded {path}: {stats['categories']} categories, "
        f"{stats['posts']} posts, {stats['comments']} comments"
    )
    return feed


def load_media_manifest(path: str) -> Dict[str, MediaReference]:
    """
    Load the exporter's image list.

    The file is ``;``-separated with a header row and the columns
    URL;IsDownloaded;FileName;FilePath;FileSize.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"File {path} not found")

    references: Dict[str, MediaReference] = {}
    with open(path, 'r', encoding='utf-8', newline='') as f:
        reader = csv.reader(f, delimiter=';')
        next(reader, None)
        for row in reader:
            if len(row) < 5 or not row[0]:
                continue
            try:
                size = int(row[4])
            except ValueError:
                size = 0
            references[row[0]] = MediaReference(
                source_url=row[0],
                local_path=row[3],
                size_bytes=size,
                filename=row[2],
                downloaded=row[1].strip().lower() in ('true', '1', 'yes')
            )

    logger.info(f"Loaded {len(references)} media references from {path}")
    return references


def load_blacklist(path: str) -> Set[str]:
    """Blacklist files are a JSON array of Google+ ids, numbers or strings."""
    data = load_json_file(path)
    if not isinstance(data, list):
        raise ConfigurationError(f"{path} must contain a JSON array of user ids")
    return {str(item) for item in data}


def load_usermap(path: str) -> Dict[str, Optional[str]]:
    """Override map: Google+ id to Discourse username, or null to protect."""
    data = load_json_file(path)
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a JSON object")
    return {str(key): value for key, value in data.items()}


def load_categories(path: str) -> Dict[str, CategoryMapping]:
    """Load ``categories.json``; an empty object is valid and gets filled in from the feeds."""
    data = load_json_file(path)
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a JSON object")
    return {
        str(external_id): CategoryMapping.from_dict(str(external_id), entry or {})
        for external_id, entry in data.items()
    }


__all__ = [
    'InputFiles',
    'load_json_file',
    'load_feed',
    'load_media_manifest',
    'load_blacklist',
    'load_usermap',
    'load_categories',
]
