"""Contract tests for EntryRepository lifecycle and timestamp rules."""

from datetime import date
from unittest.mock import MagicMock

import pytest

from todust.errors import InvalidProjectError, NotFoundError, StoreUnavailableError
from todust.models import EntryState
from todust.repository import EntryRepository


def test_add_then_get(repository):
    added = repository.add_entry("home", "Buy milk\nand bread")

    entry = repository.get_entry(added.uuid)

    assert entry == added
    assert entry.finished is None
    assert entry.started == entry.last_change
    assert entry.text == "Buy milk\nand bread"
    assert entry.state is EntryState.ACTIVE


def test_add_generates_unique_uuids(repository):
    uuids = {repository.add_entry("home", f"entry {i}").uuid for i in range(20)}
    assert len(uuids) == 20


@pytest.mark.parametrize("project", ["", "   ", None])
def test_add_rejects_empty_project(repository, project):
    with pytest.raises(InvalidProjectError):
        repository.add_entry(project, "text")
    assert repository.project_counts() == []


def test_get_unknown_uuid(repository):
    with pytest.raises(NotFoundError):
        repository.get_entry("nope")


def test_done_then_reopen_restores_active(repository, clock):
    entry = repository.add_entry("home", "Buy milk")
    before = entry.last_change

    clock.advance(minutes=5)
    done = repository.mark_done(entry.uuid)
    clock.advance(minutes=5)
    reopened = repository.reopen(entry.uuid)

    assert done.finished == done.last_change
    assert done.state is EntryState.DONE
    assert reopened.finished is None
    assert reopened.last_change >= before
    assert (reopened.project, reopened.text, reopened.uuid, reopened.started) == (
        entry.project,
        entry.text,
        entry.uuid,
        entry.started,
    )


def test_repeated_mark_done_is_noop(repository, clock):
    entry = repository.add_entry("home", "Buy milk")
    clock.advance(minutes=1)
    first = repository.mark_done(entry.uuid)

    clock.advance(minutes=1)
    second = repository.mark_done(entry.uuid)

    assert second == first


def test_reopen_active_entry_is_noop(repository, clock):
    entry = repository.add_entry("home", "Buy milk")
    clock.advance(minutes=1)

    assert repository.reopen(entry.uuid) == entry


def test_set_done_flag(repository):
    entry = repository.add_entry("home", "Buy milk")

    assert repository.set_done(entry.uuid, True).finished is not None
    assert repository.set_done(entry.uuid, False).finished is None


def test_edit_text_without_touch_keeps_last_change(repository, clock):
    entry = repository.add_entry("home", "Buy milk")
    clock.advance(hours=1)

    edited = repository.edit_text(entry.uuid, "Buy oat milk")

    assert edited.text == "Buy oat milk"
    assert edited.last_change == entry.last_change
    assert repository.get_entry(entry.uuid).text == "Buy oat milk"


def test_edit_text_with_touch_refreshes_last_change(repository, clock):
    entry = repository.add_entry("home", "Buy milk")
    later = clock.advance(hours=1)

    edited = repository.edit_text(entry.uuid, "Buy oat milk", touch_time=True)

    assert edited.last_change == later
    assert edited.started == entry.started


def test_last_change_never_moves_backward(repository, clock):
    entry = repository.add_entry("home", "Buy milk")
    clock.advance(hours=-3)

    edited = repository.edit_text(entry.uuid, "Buy oat milk", touch_time=True)

    assert edited.last_change == entry.last_change


def test_move_project(repository, clock):
    entry = repository.add_entry("home", "Buy milk")
    later = clock.advance(minutes=2)

    moved = repository.move_project(entry.uuid, "errands")

    assert moved.project == "errands"
    assert moved.last_change == later


@pytest.mark.parametrize("project", ["", "  "])
def test_move_to_empty_project_fails(repository, project):
    entry = repository.add_entry("home", "Buy milk")

    with pytest.raises(InvalidProjectError):
        repository.move_project(entry.uuid, project)

    assert repository.get_entry(entry.uuid) == entry


@pytest.mark.parametrize(
    "operation",
    [
        lambda repo: repo.edit_text("missing", "x"),
        lambda repo: repo.move_project("missing", "home"),
        lambda repo: repo.mark_done("missing"),
        lambda repo: repo.reopen("missing"),
        lambda repo: repo.set_due("missing", None),
    ],
)
def test_mutations_on_unknown_uuid(repository, operation):
    with pytest.raises(NotFoundError):
        operation(repository)


def test_set_and_clear_due(repository, clock):
    entry = repository.add_entry("home", "Pay rent")
    clock.advance(minutes=1)

    due = repository.set_due(entry.uuid, date(2024, 3, 31))
    cleared = repository.set_due(entry.uuid, None)

    assert due.due == date(2024, 3, 31)
    assert due.last_change > entry.last_change
    assert cleared.due is None


def test_list_entries_partitions_by_state(repository, clock):
    first = repository.add_entry("home", "one")
    clock.advance(seconds=1)
    second = repository.add_entry("home", "two")
    clock.advance(seconds=1)
    repository.add_entry("work", "three")
    repository.mark_done(second.uuid)

    hidden = repository.list_entries("home")
    shown = repository.list_entries("home", show_done=True)

    assert hidden.active == [repository.get_entry(first.uuid)]
    assert hidden.done == []
    assert [e.uuid for e in shown.active] == [first.uuid]
    assert [e.uuid for e in shown.done] == [second.uuid]
    assert all(e.finished is None for e in shown.active)
    assert all(e.finished is not None for e in shown.done)


def test_list_entries_matches_project_exactly(repository):
    repository.add_entry("home", "one")
    repository.add_entry("Home", "two")
    repository.add_entry("home_office", "three")
    repository.add_entry("homeXoffice", "four")

    listing = repository.list_entries("home_office")

    assert [e.text for e in listing.active] == ["three"]
    assert [e.text for e in repository.list_entries("home").active] == ["one"]


def test_list_entries_orders_by_started(repository, clock):
    clock.advance(minutes=10)
    late = repository.add_entry("home", "late")
    clock.advance(minutes=-20)
    early = repository.add_entry("home", "early")

    assert [e.uuid for e in repository.list_entries("home").active] == [early.uuid, late.uuid]


def test_project_counts(repository):
    repository.add_entry("home", "one")
    done = repository.add_entry("home", "two")
    repository.add_entry("errands", "three")
    archived = repository.add_entry("archive", "four")
    repository.mark_done(done.uuid)
    repository.mark_done(archived.uuid)

    counts = repository.project_counts()

    assert [c.project for c in counts] == ["archive", "errands", "home"]
    for count in counts:
        assert count.total_count == count.active_count + count.done_count
    assert sum(c.total_count for c in counts) == 4
    assert [c.project for c in repository.project_counts(include_inactive=False)] == [
        "errands",
        "home",
    ]


def test_totals(repository):
    repository.add_entry("home", "one")
    repository.mark_done(repository.add_entry("work", "two").uuid)

    totals = repository.totals()

    assert (totals.active_count, totals.done_count, totals.total_count) == (1, 1, 2)


def test_rename_project(repository, clock):
    a = repository.add_entry("home", "one")
    b = repository.add_entry("home", "two")
    repository.mark_done(b.uuid)
    clock.advance(minutes=1)

    moved = repository.rename_project("home", "house")

    assert moved == 2
    assert repository.list_entries("home", show_done=True).active == []
    assert {e.uuid for e in repository.list_entries("house").active} == {a.uuid}
    assert repository.get_entry(b.uuid).project == "house"


def test_rename_unknown_project(repository):
    with pytest.raises(NotFoundError):
        repository.rename_project("nothing", "house")
    with pytest.raises(InvalidProjectError):
        repository.rename_project("home", "")


def test_resolve_short_id(repository):
    entry = repository.add_entry("home", "Buy milk")

    assert repository.resolve(entry.short_id) == entry.uuid


def test_store_unavailable_propagates():
    store = MagicMock()
    store.get.side_effect = StoreUnavailableError("database is locked")
    repository = EntryRepository(store)

    with pytest.raises(StoreUnavailableError):
        repository.get_entry("anything")
