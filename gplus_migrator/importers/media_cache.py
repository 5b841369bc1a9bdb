"""
Media cache for uploading downloaded Google+ images and videos to Discourse.

Each source URL from the exporter's image list is uploaded at most once per
run; later references reuse the cached upload.
"""

import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Set

from ..errors import DiscourseApiError, MissingMediaError, UploadFailure
from ..models import MediaReference, UploadedArtifact
from .stores import UploadStore

logger = logging.getLogger('gplus_migrator.importers.media_cache')


class MediaCache:
    """
    Deduplicating upload cache keyed by source URL.

    The cache also remembers which local files the current post references,
    freshly uploaded or reused, so the caller can write them to the upload
    manifest only when that post is actually created or changed.
    """

    def __init__(
        self,
        references: Dict[str, MediaReference],
        upload_store: Optional[UploadStore],
        dry_run: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the media cache.

        Args:
            references: Manifest entries keyed by source URL
            upload_store: Store that performs uploads (unused in dry-run)
            dry_run: If True, build preview uploads without calling the store
            logger: Logger instance
        """
        self.references = references
        self.upload_store = upload_store
        self.dry_run = dry_run
        self.logger = logger or logging.getLogger('gplus_migrator.importers.media_cache')

        self._uploaded: Dict[str, UploadedArtifact] = {}
        self._failed: Set[str] = set()
        self._pending: List[str] = []
        self._lock = threading.RLock()

        self.uploaded_bytes = 0
        self.stats = {
            'uploaded': 0,
            'cache_hits': 0,
            'missing': 0,
            'failed': 0
        }

    def knows(self, url: str) -> bool:
        """Check whether the manifest has a downloaded file for ``url``."""
        return url in self.references

    def materialize(self, source_url: str) -> UploadedArtifact:
        """
        Return the upload for a manifest URL, uploading it on first use.

        Args:
            source_url: Manifest key

        Returns:
            Cached or freshly created upload

        Raises:
            KeyError: If the URL is not in the manifest
            MissingMediaError: If the downloaded file is gone
            UploadFailure: If Discourse did not accept the file
        """
        with self._lock:
            reference = self.references[source_url]

            artifact = self._uploaded.get(source_url)
            if artifact is not None:
                self.stats['cache_hits'] += 1
                self._pending.append(reference.local_path)
                return artifact

            if source_url in self._failed:
                raise UploadFailure(source_url, "previous upload attempt failed")

            if not Path(reference.local_path).exists():
                self.stats['missing'] += 1
                self.logger.warning(f"Media file not found: {reference.local_path}")
                raise MissingMediaError(source_url, reference.local_path)

            if self.dry_run:
                artifact = UploadedArtifact(
                    id=None,
                    url=source_url,
                    original_filename=reference.filename
                )
            else:
                artifact = self._upload(reference)

            self._uploaded[source_url] = artifact
            self._pending.append(reference.local_path)
            self.uploaded_bytes += reference.size_bytes
            self.stats['uploaded'] += 1
            self.logger.debug(f"Uploaded media: {reference.filename} -> {artifact.embed_url}")
            return artifact

    def _upload(self, reference: MediaReference) -> UploadedArtifact:
        try:
            artifact = self.upload_store.create_upload(reference.local_path, reference.filename)
        except (DiscourseApiError, OSError) as e:
            self._record_failure(reference.source_url)
            raise UploadFailure(reference.source_url, str(e))

        # Discourse returns an upload without id for rejected files such as some videos
        if artifact is None or artifact.id is None:
            self._record_failure(reference.source_url)
            raise UploadFailure(reference.source_url)

        return artifact

    def _record_failure(self, source_url: str) -> None:
        self._failed.add(source_url)
        self.stats['failed'] += 1
        self.logger.warning(f"Failed to upload media: {source_url}")

    def take_pending(self) -> List[str]:
        """Return and forget the files referenced since the last take/discard."""
        with self._lock:
            pending, self._pending = self._pending, []
            return pending

    def discard_pending(self) -> None:
        with self._lock:
            self._pending = []


__all__ = ['MediaCache']
