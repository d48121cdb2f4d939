"""Entry repository: the only component that mutates entries.

Wraps an EntryStore with lifecycle and timestamp rules:
- uuid and started are fixed at creation
- finished is set on done and cleared on reopen
- last_change never moves backward and only moves on real changes
"""

import logging
import uuid as uuid_lib
from collections.abc import Callable
from dataclasses import replace
from datetime import date, datetime, timezone

from todust.errors import InvalidProjectError, NotFoundError
from todust.lib.store import EntrySource, EntryStore, escape_like
from todust.models import Entry, EntryListing, ProjectCount

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validate_project(project: str | None) -> str:
    if project is None or not project.strip():
        raise InvalidProjectError("Project name cannot be empty")
    return project


class EntryRepository:
    def __init__(self, store: EntryStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    def _touch(self, entry: Entry) -> datetime:
        return max(self.clock(), entry.last_change)

    def add_entry(self, project: str, text: str) -> Entry:
        project = _validate_project(project)
        entry_uuid = str(uuid_lib.uuid4())
        now = self.clock()
        entry_id = self.store.insert(entry_uuid, project, text, now)
        logger.info(f"added entry {entry_uuid[-8:]} to '{project}'")
        return Entry(
            id=entry_id,
            uuid=entry_uuid,
            project=project,
            text=text,
            started=now,
            last_change=now,
        )

    def get_entry(self, entry_uuid: str) -> Entry:
        return self.store.get(entry_uuid)

    def resolve(self, partial_id: str) -> str:
        """Full uuid for a short id (uuid suffix) or full uuid."""
        return self.store.resolve(partial_id)

    def list_entries(self, project: str, show_done: bool = False) -> EntryListing:
        """Active entries of project, plus done entries when show_done.

        Both lists are ordered by started, then id.
        """
        entries = [
            entry
            for entry in self.store.query(escape_like(project), active_only=not show_done)
            if entry.project == project
        ]
        return EntryListing(
            active=[e for e in entries if e.is_active],
            done=[e for e in entries if not e.is_active] if show_done else [],
        )

    def edit_text(self, entry_uuid: str, new_text: str, touch_time: bool = False) -> Entry:
        """Replace text. last_change only moves when touch_time is set."""

        def mutate(entry: Entry) -> Entry:
            if touch_time:
                return replace(entry, text=new_text, last_change=self._touch(entry))
            return replace(entry, text=new_text)

        return self.store.update(entry_uuid, mutate)

    def move_project(self, entry_uuid: str, new_project: str) -> Entry:
        new_project = _validate_project(new_project)

        def mutate(entry: Entry) -> Entry:
            return replace(entry, project=new_project, last_change=self._touch(entry))

        entry = self.store.update(entry_uuid, mutate)
        logger.info(f"moved entry {entry_uuid[-8:]} to '{new_project}'")
        return entry

    def set_done(self, entry_uuid: str, done: bool) -> Entry:
        """Set or clear finished. Repeating a call in the same state is a no-op."""

        def mutate(entry: Entry) -> Entry:
            if entry.is_active != done:
                return entry
            now = self._touch(entry)
            return replace(entry, finished=now if done else None, last_change=now)

        return self.store.update(entry_uuid, mutate)

    def mark_done(self, entry_uuid: str) -> Entry:
        return self.set_done(entry_uuid, True)

    def reopen(self, entry_uuid: str) -> Entry:
        return self.set_done(entry_uuid, False)

    def set_due(self, entry_uuid: str, due: date | None) -> Entry:
        def mutate(entry: Entry) -> Entry:
            if entry.due == due:
                return entry
            return replace(entry, due=due, last_change=self._touch(entry))

        return self.store.update(entry_uuid, mutate)

    def rename_project(self, old: str, new: str) -> int:
        """Bulk-move every entry of project old into project new."""
        old = _validate_project(old)
        new = _validate_project(new)
        moved = self.store.rename_project(old, new, self.clock())
        if not moved:
            raise NotFoundError(f"No entries in project '{old}'")
        return moved

    def project_counts(self, include_inactive: bool = True) -> list[ProjectCount]:
        """Per-project counts, sorted by project name.

        With include_inactive=False, projects without active entries are left out.
        """
        counts = self.store.count_by_project()
        if include_inactive:
            return counts
        return [count for count in counts if count.active_count]

    def totals(self) -> ProjectCount:
        totals = ProjectCount(project="")
        for count in self.store.count_by_project():
            totals.active_count += count.active_count
            totals.done_count += count.done_count
            totals.total_count += count.total_count
        return totals

    def import_entries(self, source: EntrySource | EntryStore, project: str | None = None) -> int:
        """Copy entries from another data file into this one.

        Only entries of project are copied, or every entry when project is
        None. Entries keep their uuid and timestamps. Uuids already present
        are skipped, so importing twice is harmless. All-or-nothing.
        """
        if project is None:
            entries = source.query()
        else:
            project = _validate_project(project)
            entries = [e for e in source.query(escape_like(project)) if e.project == project]

        imported = self.store.insert_entries(entries)
        logger.info(f"imported {imported} of {len(entries)} entries")
        return imported
