import logging
from datetime import datetime, timedelta

import pytest

from app.core.connection_status import (
    ConnectionIndex,
    ConnectionStatus,
    ensure_can_accept,
    ensure_can_send,
    reconcile,
)
from app.errors import PermissionDeniedError

ME, ALICE, BOB, CAROL = "me", "alice", "bob", "carol"
T0 = datetime(2026, 1, 1, 12, 0, 0)


def row(id, user1, user2, status="pending", created_at=T0):
    return {"id": id, "user1_id": user1, "user2_id": user2, "status": status, "created_at": created_at}


ROWS = [
    row("c1", ME, ALICE),
    row("c2", BOB, ME),
    row("c3", ME, CAROL, status="accepted"),
    row("c4", ALICE, BOB, status="accepted"),
]


def status(user_id, other_id, rows=ROWS):
    return ConnectionIndex(user_id, rows).status(other_id)


def test_each_other_party_gets_exactly_one_status():
    index = ConnectionIndex(ME, ROWS)

    assert index.status(ALICE) == ConnectionStatus.PENDING_SENT
    assert index.status(BOB) == ConnectionStatus.PENDING_RECEIVED
    assert index.status(CAROL) == ConnectionStatus.ACCEPTED
    assert index.status("stranger") == ConnectionStatus.NONE
    assert len(index) == 3


def test_rows_between_other_users_are_ignored():
    assert status(CAROL, BOB) == ConnectionStatus.NONE
    assert status(ALICE, BOB) == ConnectionStatus.ACCEPTED


def test_accepted_is_symmetric_and_pending_is_one_sided():
    for a, b in [(ME, CAROL), (ALICE, BOB)]:
        assert status(a, b) == ConnectionStatus.ACCEPTED
        assert status(b, a) == ConnectionStatus.ACCEPTED

    assert status(ME, ALICE) == ConnectionStatus.PENDING_SENT
    assert status(ALICE, ME) == ConnectionStatus.PENDING_RECEIVED


def test_reconcile_is_idempotent():
    first = reconcile(ME, ROWS)
    assert first == {
        ALICE: ConnectionStatus.PENDING_SENT,
        BOB: ConnectionStatus.PENDING_RECEIVED,
        CAROL: ConnectionStatus.ACCEPTED,
    }
    assert reconcile(ME, ROWS) == first
    assert reconcile(ME, ROWS + ROWS) == first


def test_self_row_never_enters_the_map():
    index = ConnectionIndex(ME, [row("self", ME, ME, status="accepted")])
    assert ME not in index
    assert index.status(ME) == ConnectionStatus.NONE


def test_newest_duplicate_wins_with_a_warning(caplog):
    rows = [
        row("old", ME, ALICE, status="pending", created_at=T0),
        row("new", ALICE, ME, status="accepted", created_at=T0 + timedelta(minutes=5)),
    ]
    with caplog.at_level(logging.WARNING):
        index = ConnectionIndex(ME, rows)
        reversed_index = ConnectionIndex(ME, list(reversed(rows)))

    assert index.status(ALICE) == ConnectionStatus.ACCEPTED
    assert reversed_index.status(ALICE) == ConnectionStatus.ACCEPTED
    assert index.row(ALICE)["id"] == "new"
    assert "Data integrity" in caplog.text


def test_ids_by_status():
    index = ConnectionIndex(ME, ROWS)
    assert index.ids(ConnectionStatus.ACCEPTED) == [CAROL]
    assert index.ids(ConnectionStatus.PENDING_RECEIVED) == [BOB]


# --------------------------------------------------
# Transition guards
# --------------------------------------------------
def test_only_recipient_can_accept():
    pending = row("c1", ME, ALICE)
    ensure_can_accept(pending, ALICE)

    with pytest.raises(PermissionDeniedError):
        ensure_can_accept(pending, ME)
    with pytest.raises(PermissionDeniedError):
        ensure_can_accept(row("c3", ME, CAROL, status="accepted"), CAROL)
    with pytest.raises(PermissionDeniedError):
        ensure_can_accept(None, ALICE)


def test_send_requires_no_existing_row():
    index = ConnectionIndex(ME, ROWS)
    ensure_can_send(index, "stranger")

    for other in (ALICE, BOB, CAROL, ME):
        with pytest.raises(PermissionDeniedError):
            ensure_can_send(index, other)
