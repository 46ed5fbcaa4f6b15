"""Authorization decisions and share/ownership transitions for trackers.

Every operation below starts from :meth:`AccessControlService.resolve_access`,
which compares the requester against the tracker's current owner and, failing
that, looks for a share row. Row-level security in a hosted store is only a
backstop: the ownership transfer runs with elevated privileges and bypasses
it, so the checks here are the ones that count.

Errors are raised as the domain exceptions from ``core.errors`` and mapped to
HTTP statuses by the app's exception handlers.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import BadRequest, Conflict, Forbidden, InternalError, NotFound
from ..core.permissions import (
    PERMISSION_READ,
    PERMISSION_WRITE,
    ROLE_NONE,
    ROLE_OWNER,
    ROLE_SHARED,
    normalize_permission,
)
from ..crud import shares as share_store
from ..crud import trackers as tracker_store
from ..models.tracker import Tracker, TrackerShare
from ..schemas.share import ShareOut
from .identity import Identity, IdentityLookupError, IdentityProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessDecision:
    """The role a requester holds on one tracker at the moment of the check."""

    tracker: Tracker
    role: str
    share: TrackerShare | None = None

    @property
    def permission(self) -> str | None:
        if self.role == ROLE_OWNER:
            return PERMISSION_WRITE
        if self.share is not None:
            return self.share.permission
        return None

    @property
    def can_read(self) -> bool:
        return self.role in (ROLE_OWNER, ROLE_SHARED)

    @property
    def can_write(self) -> bool:
        return self.permission == PERMISSION_WRITE


@contextmanager
def store_errors(db: Session, context: str, *, conflict: str | None = None) -> Iterator[None]:
    """Translate SQLAlchemy failures into the service's error taxonomy.

    With ``conflict`` set, a constraint violation becomes :class:`Conflict`
    carrying that message; otherwise every store failure is internal.
    """

    try:
        yield
    except IntegrityError as exc:
        db.rollback()
        if conflict:
            raise Conflict(conflict) from exc
        raise InternalError(f"Failed to {context}", details=str(exc.orig)) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise InternalError(f"Failed to {context}", details=str(exc)) from exc


class AccessControlService:
    def __init__(self, db: Session, identity: IdentityProvider) -> None:
        self.db = db
        self.identity = identity

    # ---- role resolution

    def _load_tracker(self, tracker_id: str | None, *, fresh: bool = False) -> Tracker:
        if not tracker_id:
            raise BadRequest("trackerId is required")
        with store_errors(self.db, "load tracker"):
            tracker = tracker_store.get_tracker(self.db, tracker_id, fresh=fresh)
        if tracker is None:
            raise NotFound("Tracker not found")
        return tracker

    def resolve_access(self, tracker_id: str, requester_id: str, *, fresh: bool = False) -> AccessDecision:
        tracker = self._load_tracker(tracker_id, fresh=fresh)
        if tracker.user_id == requester_id:
            return AccessDecision(tracker=tracker, role=ROLE_OWNER)
        with store_errors(self.db, "load tracker share"):
            share = share_store.get_share_for(self.db, tracker.id, requester_id)
        if share is not None:
            return AccessDecision(tracker=tracker, role=ROLE_SHARED, share=share)
        return AccessDecision(tracker=tracker, role=ROLE_NONE)

    def require_access(self, tracker_id: str, requester_id: str, *, write: bool = False) -> AccessDecision:
        """Gate for tracker-scoped data: reads need any role, writes need ``write``."""

        decision = self.resolve_access(tracker_id, requester_id)
        if not decision.can_read:
            raise Forbidden("Access denied")
        if write and not decision.can_write:
            raise Forbidden("Write access required")
        return decision

    def require_owner(self, tracker_id: str, requester_id: str, message: str) -> Tracker:
        decision = self.resolve_access(tracker_id, requester_id, fresh=True)
        if decision.role != ROLE_OWNER:
            raise Forbidden(message)
        return decision.tracker

    # ---- identity helpers

    def _email_for(self, user_id: str) -> str | None:
        try:
            return self.identity.get_email(user_id)
        except IdentityLookupError as exc:
            logger.warning("Could not resolve email for user %s: %s", user_id, exc)
            return None
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("Could not resolve email for user %s: %s", user_id, exc)
            return None

    def _find_user_by_email(self, email: str) -> Identity:
        try:
            user = self.identity.find_by_email(email)
        except IdentityLookupError as exc:
            raise InternalError("Failed to look up user by email", details=str(exc)) from exc
        if user is None:
            raise NotFound(f'User with email "{email}" not found. They need to sign up first.')
        return user

    def _share_view(self, share: TrackerShare) -> ShareOut:
        view = ShareOut.model_validate(share)
        view.shared_with_email = self._email_for(share.shared_with_user_id)
        return view

    # ---- shares

    def list_shares(self, tracker_id: str, requester_id: str) -> list[ShareOut]:
        decision = self.resolve_access(tracker_id, requester_id)
        if decision.role == ROLE_OWNER:
            with store_errors(self.db, "fetch tracker shares"):
                rows = share_store.list_tracker_shares(self.db, decision.tracker.id)
            return [self._share_view(share) for share in rows]
        if decision.role == ROLE_SHARED and decision.share is not None:
            return [self._share_view(decision.share)]
        raise Forbidden("Access denied")

    def create_share(
        self,
        tracker_id: str,
        requester_id: str,
        *,
        shared_with_user_id: str | None = None,
        shared_with_email: str | None = None,
        permission: str | None = PERMISSION_READ,
    ) -> ShareOut:
        if not tracker_id:
            raise BadRequest("trackerId is required")
        if not shared_with_user_id and not shared_with_email:
            raise BadRequest("Either sharedWithUserId or sharedWithEmail is required")
        normalized = normalize_permission(permission if permission is not None else PERMISSION_READ)
        if normalized is None:
            raise BadRequest('permission must be "read" or "write"')

        tracker = self.require_owner(tracker_id, requester_id, "Only tracker owner can share")

        target_id = shared_with_user_id or self._find_user_by_email(shared_with_email or "").id
        if target_id == requester_id:
            raise BadRequest("Cannot share tracker with yourself")

        with store_errors(self.db, "create tracker share", conflict="Tracker already shared with this user"):
            share = share_store.insert_share(
                self.db,
                tracker_id=tracker.id,
                shared_with_user_id=target_id,
                permission=normalized,
                shared_by_user_id=requester_id,
            )
        logger.info("Tracker %s shared with %s (%s)", tracker.id, target_id, normalized)
        return self._share_view(share)

    def update_share_permission(self, share_id: str, requester_id: str, permission: str | None) -> ShareOut:
        if not share_id or not permission:
            raise BadRequest("shareId and permission are required")
        normalized = normalize_permission(permission)
        if normalized is None:
            raise BadRequest('permission must be "read" or "write"')

        with store_errors(self.db, "load tracker share"):
            share = share_store.get_share(self.db, share_id)
        if share is None:
            raise NotFound("Share not found")
        self.require_owner(share.tracker_id, requester_id, "Only tracker owner can update share permissions")

        with store_errors(self.db, "update tracker share"):
            share = share_store.set_share_permission(self.db, share, normalized)
        logger.info("Share %s permission set to %s", share.id, normalized)
        return self._share_view(share)

    def delete_share(
        self,
        requester_id: str,
        *,
        share_id: str | None = None,
        tracker_id: str | None = None,
    ) -> None:
        if bool(share_id) == bool(tracker_id):
            raise BadRequest("Exactly one of shareId or trackerId is required")

        if share_id:
            with store_errors(self.db, "load tracker share"):
                share = share_store.get_share(self.db, share_id)
            if share is None:
                raise NotFound("Share not found")
            decision = self.resolve_access(share.tracker_id, requester_id, fresh=True)
            if decision.role != ROLE_OWNER and share.shared_with_user_id != requester_id:
                raise Forbidden("Access denied")
            with store_errors(self.db, "delete tracker share"):
                share_store.delete_share(self.db, share)
            logger.info("Share %s removed by %s", share_id, requester_id)
            return

        tracker = self.require_owner(tracker_id, requester_id, "Only tracker owner can delete all shares")
        with store_errors(self.db, "delete tracker shares"):
            removed = share_store.delete_tracker_shares(self.db, tracker.id)
        logger.info("Removed %d shares from tracker %s", removed, tracker.id)

    # ---- ownership

    def transfer_ownership(
        self,
        tracker_id: str,
        requester_id: str,
        *,
        new_owner_id: str | None = None,
        new_owner_email: str | None = None,
    ) -> str:
        """Hand the tracker to another identity and return the new owner's id.

        The owner column is rewritten with a conditional update guarded on the
        requester still being the owner, so a concurrent transfer that already
        moved the tracker makes this one fail with ``Forbidden``. The two share
        deletions that follow are separate statements; see
        :meth:`_drop_share_after_transfer`.
        """

        if not tracker_id:
            raise BadRequest("Tracker ID is required")
        if not new_owner_id and not new_owner_email:
            raise BadRequest("Either newOwnerId or newOwnerEmail is required")

        tracker = self.require_owner(tracker_id, requester_id, "Only tracker owner can transfer ownership")

        target_id = new_owner_id or self._find_user_by_email(new_owner_email or "").id
        if target_id == requester_id:
            raise BadRequest("Cannot transfer tracker to yourself")

        try:
            moved = tracker_store.reassign_owner(self.db, tracker.id, requester_id, target_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise InternalError("Failed to transfer tracker ownership", details=str(exc)) from exc
        if not moved:
            raise Forbidden("Only tracker owner can transfer ownership")

        self._drop_share_after_transfer(tracker.id, target_id)
        self._drop_share_after_transfer(tracker.id, requester_id)
        logger.info("Tracker %s ownership moved from %s to %s", tracker.id, requester_id, target_id)
        return target_id

    def _drop_share_after_transfer(self, tracker_id: str, user_id: str) -> bool:
        """Remove ``user_id``'s share on ``tracker_id``, retrying before giving up.

        A failure here never undoes the transfer. It is logged so the stale row
        can be cleaned up by hand.
        """

        attempts = 1 + max(settings.TRANSFER_CLEANUP_RETRIES, 0)
        for attempt in range(1, attempts + 1):
            try:
                share_store.delete_tracker_shares(self.db, tracker_id, user_id)
                return True
            except SQLAlchemyError as exc:
                self.db.rollback()
                logger.warning(
                    "Share cleanup for tracker %s user %s failed (attempt %d/%d): %s",
                    tracker_id,
                    user_id,
                    attempt,
                    attempts,
                    exc,
                )
        logger.error("Stale share left on tracker %s for user %s after transfer", tracker_id, user_id)
        return False


__all__ = ["AccessControlService", "AccessDecision", "store_errors"]
