"""
Resolution of Google+ users to Discourse users.

Users are resolved in a fixed order: this run's cache, the persisted
association store, the operator's override map (usermap.json), the
blacklist, and finally (import mode only) a deferred creation request.
Creation is two-phase: ``scan`` collects requests for the whole corpus and
``commit`` creates them, so that mentions of users first seen deeper in the
export resolve no matter where they occur.
"""

import logging
import threading
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..errors import DiscourseApiError
from ..models import (
    ContentNode,
    CreationRequest,
    ExternalIdentity,
    Feed,
    IdentityState,
    Mention,
    RunMode,
)
from .stores import IdentityStore

logger = logging.getLogger('gplus_migrator.importers.identity_resolver')


class IdentityResolver:
    """Resolves and, in import mode, creates Discourse users for Google+ ids."""

    PLACEHOLDER_EMAIL_DOMAIN = 'gplus.invalid'

    def __init__(
        self,
        identity_store: IdentityStore,
        mode: RunMode,
        overrides: Optional[Dict[str, Optional[str]]] = None,
        blacklist: Optional[Set[str]] = None,
        dry_run: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the resolver.

        Args:
            identity_store: Association lookup and user creation
            mode: Import creates missing users, update only reports them
            overrides: Google+ id to Discourse username, or None for "do not touch"
            blacklist: Google+ ids whose content is not imported
            dry_run: If True, never create users
            logger: Logger instance
        """
        self.identity_store = identity_store
        self.mode = mode
        self.overrides = dict(overrides or {})
        self.blacklist = set(blacklist or ())
        self.dry_run = dry_run
        self.logger = logger or logging.getLogger('gplus_migrator.importers.identity_resolver')

        self._identities: Dict[str, ExternalIdentity] = {}
        self._requests: Dict[str, CreationRequest] = {}
        self._invalid: Dict[str, str] = {}
        self._committed = mode is RunMode.UPDATE
        self._lock = threading.RLock()

    @property
    def committed(self) -> bool:
        return self._committed

    @property
    def creation_requests(self) -> List[CreationRequest]:
        return list(self._requests.values())

    def invalid_identities(self) -> List[Tuple[str, str]]:
        """Users with no association, override or blacklist entry, in first-seen order."""
        return list(self._invalid.items())

    def is_blacklisted(self, external_id: str) -> bool:
        return external_id in self.blacklist

    def is_protected(self, external_id: str) -> bool:
        """A null usermap entry marks a user whose content must not be modified."""
        return external_id in self.overrides and self.overrides[external_id] is None

    def resolve(self, external_id: str, display_name: str) -> ExternalIdentity:
        """
        Resolve a Google+ user, caching the outcome for the rest of the run.

        Args:
            external_id: Google+ user id
            display_name: Name shown in the export, used for new users

        Returns:
            The identity; in import mode it stays UNRESOLVED until ``commit``
        """
        with self._lock:
            identity = self._identities.get(external_id)
            if identity is not None:
                return identity

            identity = ExternalIdentity(external_id=external_id, display_name=display_name)
            target = self.identity_store.lookup_association(external_id)

            if target is not None:
                identity.state = IdentityState.LINKED
                identity.target = target
                if target.silenced or target.suspended:
                    self.blacklist.add(external_id)
            elif external_id in self.overrides:
                handle = self.overrides[external_id]
                if handle is None:
                    identity.state = IdentityState.PROTECTED
                else:
                    identity.state = IdentityState.LINKED
                    identity.override_handle = handle
                    identity.target = self.identity_store.find_by_handle(handle)
            elif external_id in self.blacklist:
                identity.state = IdentityState.BLACKLISTED
                if self.mode is RunMode.IMPORT:
                    self._request_creation(identity, silence=True)
            elif self.mode is RunMode.UPDATE:
                identity.state = IdentityState.INVALID
                self._invalid[external_id] = display_name
            else:
                self._request_creation(identity, silence=False)

            identity.blacklisted = external_id in self.blacklist
            self._identities[external_id] = identity
            return identity

    def _request_creation(self, identity: ExternalIdentity, silence: bool) -> None:
        if self._committed:
            # Too late to create; the caller sees an unresolved identity
            self.logger.debug(f"User {identity.external_id} first seen after commit")
            return
        self._requests[identity.external_id] = CreationRequest(
            external_id=identity.external_id,
            display_name=identity.display_name,
            email=f"{identity.external_id}@{self.PLACEHOLDER_EMAIL_DOMAIN}",
            silence=silence
        )

    def scan(self, feeds: Iterable[Feed]) -> int:
        """
        Phase one: resolve every author and mentioned user in the corpus.

        Returns:
            Number of users that will need to be created
        """
        for feed in feeds:
            for _, post in feed.iter_posts():
                self._scan_node(post)
                for comment in post.comments:
                    self._scan_node(comment)

        self.logger.info(
            f"Scanned {len(self._identities)} Google+ users, "
            f"{len(self._requests)} to create, {len(self._invalid)} unmapped"
        )
        return len(self._requests)

    def _scan_node(self, node: ContentNode) -> None:
        self.resolve(node.author_id, node.author_name)
        for mention in node.mentions():
            # deleted Google+ users show up with a null id
            if mention.external_id is not None:
                self.resolve(mention.external_id, mention.display_name)

    def commit(self) -> List[ExternalIdentity]:
        """
        Phase two: create all requested users and record their associations.

        Returns:
            Identities that received a new Discourse user
        """
        created = []
        with self._lock:
            if self._committed:
                return created

            if self.dry_run:
                self.logger.info(f"[DRY RUN] Would create {len(self._requests)} users")
                self._committed = True
                return created

            for request in self._requests.values():
                identity = self._identities[request.external_id]
                try:
                    identity.target = self.identity_store.create_identity(request)
                except DiscourseApiError as e:
                    self.logger.error(
                        f"Failed to create user for {request.display_name} "
                        f"(id {request.external_id}): {e}"
                    )
                    identity.state = IdentityState.INVALID
                    continue

                if identity.state is not IdentityState.BLACKLISTED:
                    identity.state = IdentityState.NEWLY_CREATED
                created.append(identity)

            self._committed = True

        self.logger.info(f"Created {len(created)} users")
        return created

    def resolve_mention(self, mention: Mention) -> ExternalIdentity:
        """
        Resolve the user a mention refers to.

        Raises:
            ValueError: For a mention of a deleted user (no id)
            RuntimeError: If called in import mode before ``commit``
        """
        if mention.external_id is None:
            raise ValueError(f"mention of deleted user {mention.display_name!r} has no id")
        if not self._committed:
            raise RuntimeError("users must be committed before rendering mentions")
        return self.resolve(mention.external_id, mention.display_name)


__all__ = ['IdentityResolver']
