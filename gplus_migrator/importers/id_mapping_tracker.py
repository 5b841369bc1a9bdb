"""
ID mapping tracker for the Google+ to Discourse import.

This module tracks the mapping between Google+ ids and Discourse ids and
persists it to a JSON file, so that later runs (and update mode) can find
what an earlier run imported.
"""

import json
import logging
import os
import threading
from typing import Any, Dict, Optional

logger = logging.getLogger('gplus_migrator.importers.id_mapping_tracker')


class IdMappingTracker:
    """Tracks mappings between Google+ and Discourse IDs."""

    FORMAT_VERSION = 1
    DEFAULT_SAVE_INTERVAL = 50

    def __init__(
        self,
        path: Optional[str] = None,
        save_interval: int = DEFAULT_SAVE_INTERVAL,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize ID mapping tracker.

        Args:
            path: JSON file the mappings are persisted to (None keeps them in memory)
            save_interval: Number of new mappings written together; call
                ``save()`` at the end of a run for the remainder
            logger: Optional logger instance (defaults to module logger)
        """
        self.path = path
        self.save_interval = max(1, save_interval)
        self.logger = logger or logging.getLogger('gplus_migrator.importers.id_mapping_tracker')
        self._lock = threading.RLock()
        self._unsaved = 0

        # Google+ post or comment id -> {'post_id', 'topic_id'}
        self._posts: Dict[str, Dict[str, int]] = {}

        # Google+ user id -> {'user_id', 'username'}
        self._users: Dict[str, Dict[str, Any]] = {}

        self.logger.debug("Initialized IdMappingTracker")

    @classmethod
    def load(
        cls,
        path: str,
        save_interval: int = DEFAULT_SAVE_INTERVAL,
        logger: Optional[logging.Logger] = None
    ) -> 'IdMappingTracker':
        """
        Load mappings from ``path``; a missing file starts an empty tracker.

        Raises:
            ValueError: If the file exists but is not a mapping file
        """
        tracker = cls(path, save_interval=save_interval, logger=logger)
        if not os.path.exists(path):
            tracker.logger.info(f"No mapping file at {path}, starting empty")
            return tracker

        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Mapping file {path} must contain a JSON object")

        tracker._posts = {str(k): dict(v) for k, v in (data.get('posts') or {}).items()}
        tracker._users = {str(k): dict(v) for k, v in (data.get('users') or {}).items()}
        tracker.logger.info(
            f"Loaded {len(tracker._posts)} post and {len(tracker._users)} user mappings from {path}"
        )
        return tracker

    @property
    def dirty(self) -> bool:
        return self._unsaved > 0

    def save(self) -> None:
        """Write all mappings to the mapping file, replacing it atomically."""
        if not self.path:
            return

        with self._lock:
            data = {
                'version': self.FORMAT_VERSION,
                'posts': self._posts,
                'users': self._users
            }
            temp_path = f"{self.path}.tmp"
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(temp_path, self.path)
            self._unsaved = 0

        self.logger.debug(f"Saved ID mappings to {self.path}")

    def _changed(self) -> None:
        self._unsaved += 1
        if self._unsaved >= self.save_interval:
            self.save()

    def add_post_mapping(self, external_id: str, post_id: int, topic_id: int) -> None:
        """
        Store mapping for a Google+ post or comment to a Discourse post.

        Args:
            external_id: Google+ post or comment id
            post_id: Discourse post id
            topic_id: Discourse topic id the post belongs to
        """
        with self._lock:
            self._posts[external_id] = {'post_id': post_id, 'topic_id': topic_id}
            self._changed()

        self.logger.debug(f"Post mapping added: {external_id} -> post:{post_id} topic:{topic_id}")

    def add_user_mapping(self, external_id: str, user_id: int, username: str) -> None:
        """
        Store mapping for a Google+ user to a Discourse user.

        Args:
            external_id: Google+ user id
            user_id: Discourse user id
            username: Discourse username
        """
        with self._lock:
            self._users[external_id] = {'user_id': user_id, 'username': username}
            self._changed()

        self.logger.debug(f"User mapping added: {external_id} -> {username}:{user_id}")

    def get_post(self, external_id: str) -> Optional[Dict[str, int]]:
        """
        Get Discourse post info for a Google+ post or comment id.

        Returns:
            Dict with 'post_id' and 'topic_id' or None
        """
        with self._lock:
            return self._posts.get(external_id)

    def get_user(self, external_id: str) -> Optional[Dict[str, Any]]:
        """
        Get Discourse user info for a Google+ user id.

        Returns:
            Dict with 'user_id' and 'username' or None
        """
        with self._lock:
            return self._users.get(external_id)

    def get_statistics(self) -> Dict[str, int]:
        """
        Get mapping statistics.

        Returns:
            Dict with counts of mapped items
        """
        with self._lock:
            return {
                'total_posts': len(self._posts),
                'total_users': len(self._users)
            }


__all__ = ['IdMappingTracker']
