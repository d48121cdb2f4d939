from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class EntryState(str, Enum):
    ACTIVE = "active"
    DONE = "done"


@dataclass(frozen=True)
class Entry:
    id: int
    uuid: str
    project: str
    text: str
    started: datetime
    last_change: datetime
    finished: datetime | None = None
    due: date | None = None

    @property
    def is_active(self) -> bool:
        return self.finished is None

    @property
    def state(self) -> EntryState:
        return EntryState.ACTIVE if self.is_active else EntryState.DONE

    @property
    def short_id(self) -> str:
        return self.uuid[-8:]


@dataclass
class EntryListing:
    active: list[Entry] = field(default_factory=list)
    done: list[Entry] = field(default_factory=list)


@dataclass
class ProjectCount:
    project: str
    active_count: int = 0
    done_count: int = 0
    total_count: int = 0
