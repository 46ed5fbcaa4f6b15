"""Tests for tracker role resolution, sharing and ownership transfer."""

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from savings_tracker.core.errors import BadRequest, Conflict, Forbidden, InternalError, NotFound
from savings_tracker.crud import shares as share_store
from savings_tracker.crud.trackers import create_tracker, get_tracker
from savings_tracker.db.session import Base, enable_sqlite_foreign_keys
from savings_tracker.services.access import AccessControlService
from savings_tracker.services.identity import Identity, IdentityLookupError

# Ensure models are registered so metadata tables are created
from savings_tracker.models import finance as finance_model  # noqa: F401
from savings_tracker.models import tracker as tracker_model  # noqa: F401

ALICE = "user-alice"
BOB = "user-bob"
CAROL = "user-carol"


class FakeIdentityProvider:
    def __init__(self, users):
        self.users = dict(users)
        self.fail_lookups = False

    def resolve_token(self, token):
        return None

    def get_email(self, user_id):
        if self.fail_lookups:
            raise IdentityLookupError("auth server unavailable")
        return self.users.get(user_id)

    def find_by_email(self, email):
        if self.fail_lookups:
            raise IdentityLookupError("auth server unavailable")
        for user_id, known in self.users.items():
            if known.lower() == email.strip().lower():
                return Identity(id=user_id, email=known)
        return None


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    enable_sqlite_foreign_keys(engine)
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def identity():
    return FakeIdentityProvider(
        {ALICE: "alice@example.com", BOB: "bob@example.com", CAROL: "carol@example.com"}
    )


@pytest.fixture()
def service(db_session, identity):
    return AccessControlService(db_session, identity)


@pytest.fixture()
def tracker(db_session):
    return create_tracker(db_session, ALICE, {"name": "Vacation Fund"})


def test_resolve_access_roles(service, tracker):
    service.create_share(tracker.id, ALICE, shared_with_user_id=BOB, permission="write")

    assert service.resolve_access(tracker.id, ALICE).role == "owner"
    bob = service.resolve_access(tracker.id, BOB)
    assert bob.role == "shared"
    assert bob.permission == "write"
    assert service.resolve_access(tracker.id, CAROL).role == "none"


def test_resolve_access_unknown_tracker(service):
    with pytest.raises(NotFound):
        service.resolve_access("missing", ALICE)


def test_shared_user_sees_only_own_share_and_owner_sees_email(service, tracker):
    service.create_share(tracker.id, ALICE, shared_with_user_id=BOB, permission="read")

    bob_view = service.list_shares(tracker.id, BOB)
    assert len(bob_view) == 1
    assert bob_view[0].shared_with_user_id == BOB

    owner_view = service.list_shares(tracker.id, ALICE)
    assert len(owner_view) == 1
    assert owner_view[0].shared_with_email == "bob@example.com"
    assert owner_view[0].shared_by_user_id == ALICE


def test_list_shares_newest_first(service, db_session, tracker):
    older = service.create_share(tracker.id, ALICE, shared_with_user_id=BOB)
    newer = service.create_share(tracker.id, ALICE, shared_with_user_id=CAROL)
    share_store.get_share(db_session, older.id).created_at = "2024-01-01T00:00:00.000Z"
    share_store.get_share(db_session, newer.id).created_at = "2024-06-01T00:00:00.000Z"
    db_session.commit()

    assert [s.id for s in service.list_shares(tracker.id, ALICE)] == [newer.id, older.id]


def test_list_shares_survives_email_lookup_failure(service, identity, tracker):
    service.create_share(tracker.id, ALICE, shared_with_user_id=BOB)
    identity.fail_lookups = True

    shares = service.list_shares(tracker.id, ALICE)

    assert len(shares) == 1
    assert shares[0].shared_with_email is None


def test_list_shares_forbidden_for_outsider(service, tracker):
    with pytest.raises(Forbidden):
        service.list_shares(tracker.id, CAROL)


def test_create_share_by_email_is_case_insensitive(service, tracker):
    share = service.create_share(tracker.id, ALICE, shared_with_email="BOB@Example.com", permission="write")

    assert share.shared_with_user_id == BOB
    assert share.permission == "write"


def test_create_share_defaults_to_read(service, tracker):
    share = service.create_share(tracker.id, ALICE, shared_with_user_id=BOB, permission=None)
    assert share.permission == "read"


@pytest.mark.parametrize(
    "kwargs",
    [
        {},
        {"shared_with_user_id": BOB, "permission": "admin"},
        {"shared_with_user_id": ALICE},
        {"shared_with_email": "alice@example.com"},
    ],
)
def test_create_share_rejects_bad_requests(service, tracker, kwargs):
    with pytest.raises(BadRequest):
        service.create_share(tracker.id, ALICE, **kwargs)


def test_create_share_unknown_email(service, tracker):
    with pytest.raises(NotFound) as exc_info:
        service.create_share(tracker.id, ALICE, shared_with_email="nobody@example.com")
    assert "sign up first" in exc_info.value.message


def test_create_share_email_lookup_failure_is_internal(service, identity, tracker):
    identity.fail_lookups = True
    with pytest.raises(InternalError):
        service.create_share(tracker.id, ALICE, shared_with_email="bob@example.com")


def test_create_share_requires_owner(service, tracker):
    service.create_share(tracker.id, ALICE, shared_with_user_id=BOB, permission="write")
    with pytest.raises(Forbidden):
        service.create_share(tracker.id, BOB, shared_with_user_id=CAROL)


def test_duplicate_share_conflicts_without_second_row(service, db_session, tracker):
    service.create_share(tracker.id, ALICE, shared_with_user_id=BOB)
    with pytest.raises(Conflict):
        service.create_share(tracker.id, ALICE, shared_with_user_id=BOB, permission="write")

    rows = share_store.list_tracker_shares(db_session, tracker.id)
    assert len(rows) == 1
    assert rows[0].permission == "read"


def test_update_share_permission(service, tracker):
    share = service.create_share(tracker.id, ALICE, shared_with_user_id=BOB)

    updated = service.update_share_permission(share.id, ALICE, "write")

    assert updated.permission == "write"
    assert service.resolve_access(tracker.id, BOB).permission == "write"


def test_update_share_permission_forbidden_for_others(service, tracker):
    share = service.create_share(tracker.id, ALICE, shared_with_user_id=BOB)

    with pytest.raises(Forbidden):
        service.update_share_permission(share.id, CAROL, "write")
    with pytest.raises(Forbidden):
        service.update_share_permission(share.id, BOB, "write")


def test_update_share_permission_validation(service, tracker):
    share = service.create_share(tracker.id, ALICE, shared_with_user_id=BOB)
    with pytest.raises(BadRequest):
        service.update_share_permission(share.id, ALICE, "owner")
    with pytest.raises(NotFound):
        service.update_share_permission("missing", ALICE, "read")


def test_delete_share_by_owner_and_by_target(service, tracker):
    bob_share = service.create_share(tracker.id, ALICE, shared_with_user_id=BOB)
    carol_share = service.create_share(tracker.id, ALICE, shared_with_user_id=CAROL)

    service.delete_share(ALICE, share_id=bob_share.id)
    service.delete_share(CAROL, share_id=carol_share.id)

    assert service.resolve_access(tracker.id, BOB).role == "none"
    assert service.resolve_access(tracker.id, CAROL).role == "none"


def test_delete_share_forbidden_for_third_party(service, tracker):
    share = service.create_share(tracker.id, ALICE, shared_with_user_id=BOB)
    with pytest.raises(Forbidden):
        service.delete_share(CAROL, share_id=share.id)


def test_delete_share_requires_exactly_one_selector(service, tracker):
    share = service.create_share(tracker.id, ALICE, shared_with_user_id=BOB)
    with pytest.raises(BadRequest):
        service.delete_share(ALICE)
    with pytest.raises(BadRequest):
        service.delete_share(ALICE, share_id=share.id, tracker_id=tracker.id)


def test_bulk_delete_is_owner_only(service, tracker):
    service.create_share(tracker.id, ALICE, shared_with_user_id=BOB, permission="write")
    service.create_share(tracker.id, ALICE, shared_with_user_id=CAROL)

    with pytest.raises(Forbidden):
        service.delete_share(BOB, tracker_id=tracker.id)

    service.delete_share(ALICE, tracker_id=tracker.id)
    assert service.list_shares(tracker.id, ALICE) == []


def test_transfer_moves_ownership_and_drops_new_owner_share(service, db_session, tracker):
    service.create_share(tracker.id, ALICE, shared_with_user_id=BOB, permission="write")

    new_owner = service.transfer_ownership(tracker.id, ALICE, new_owner_email="bob@example.com")

    assert new_owner == BOB
    assert service.resolve_access(tracker.id, BOB).role == "owner"
    assert service.resolve_access(tracker.id, ALICE).role == "none"
    assert share_store.get_share_for(db_session, tracker.id, BOB) is None


def test_new_owner_can_share_back_with_former_owner(service, tracker):
    service.transfer_ownership(tracker.id, ALICE, new_owner_id=BOB)

    service.create_share(tracker.id, BOB, shared_with_user_id=ALICE, permission="read")

    decision = service.resolve_access(tracker.id, ALICE)
    assert decision.role == "shared"
    assert decision.permission == "read"


def test_transfer_rejects_self_and_non_owner(service, tracker):
    with pytest.raises(BadRequest):
        service.transfer_ownership(tracker.id, ALICE, new_owner_id=ALICE)
    with pytest.raises(BadRequest):
        service.transfer_ownership(tracker.id, ALICE)
    with pytest.raises(Forbidden):
        service.transfer_ownership(tracker.id, BOB, new_owner_id=CAROL)
    with pytest.raises(NotFound):
        service.transfer_ownership(tracker.id, ALICE, new_owner_email="ghost@example.com")


def test_second_transfer_by_former_owner_is_forbidden(service, tracker):
    service.transfer_ownership(tracker.id, ALICE, new_owner_id=BOB)
    with pytest.raises(Forbidden):
        service.transfer_ownership(tracker.id, ALICE, new_owner_id=CAROL)


def test_transfer_succeeds_when_share_cleanup_fails(service, db_session, tracker, monkeypatch):
    calls = []

    def broken_delete(db, tracker_id, user_id=None):
        calls.append(user_id)
        raise OperationalError("DELETE FROM tracker_shares", {}, Exception("database is locked"))

    monkeypatch.setattr(share_store, "delete_tracker_shares", broken_delete)

    service.transfer_ownership(tracker.id, ALICE, new_owner_id=BOB)

    assert get_tracker(db_session, tracker.id, fresh=True).user_id == BOB
    # one retry per stale-share cleanup step
    assert calls == [BOB, BOB, ALICE, ALICE]


def test_require_access_gates_writes_on_permission(service, tracker):
    service.create_share(tracker.id, ALICE, shared_with_user_id=BOB, permission="read")
    service.create_share(tracker.id, ALICE, shared_with_user_id=CAROL, permission="write")

    assert service.require_access(tracker.id, BOB).can_read
    with pytest.raises(Forbidden):
        service.require_access(tracker.id, BOB, write=True)
    assert service.require_access(tracker.id, CAROL, write=True).can_write
    assert service.require_access(tracker.id, ALICE, write=True).role == "owner"
