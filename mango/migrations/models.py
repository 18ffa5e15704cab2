# mango — fluent query builder and schema migrations for MySQL
# Copyright (C) 2024-2026 Dr Horst Herb
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Data models for the migrations module.

Defines the migration record itself, the ledger row shape, and the
status / progress reports handed back to callers.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mango.errors import ValidationError

if TYPE_CHECKING:
    from mango.database import Database

MigrationStep = Callable[["Database"], Awaitable[Any]]

_NAME = re.compile(r"^[A-Za-z0-9_]+$")


# ---------------------------------------------------------------------------
# Migration record
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Migration:
    """A single, named, timestamp-ordered schema change.

    Attributes:
        name: Unique name; also the ledger key.
        timestamp: Ordering key (epoch milliseconds by convention).
        up: ``async def up(db)`` applying the change.
        down: ``async def down(db)`` reversing it.
    """

    name: str
    timestamp: int
    up: MigrationStep
    down: MigrationStep

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not _NAME.match(self.name):
            raise ValidationError(f"Invalid migration name: {self.name!r}")
        if isinstance(self.timestamp, bool) or not isinstance(self.timestamp, int):
            raise ValidationError(
                f"Migration {self.name!r} timestamp must be an int, got {self.timestamp!r}"
            )
        if not callable(self.up) or not callable(self.down):
            raise ValidationError(f"Migration {self.name!r} needs callable up and down")


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


@dataclass
class LedgerRow:
    """One executed migration as stored in the ledger table."""

    id: int
    name: str
    timestamp: int
    executed_at: int

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> LedgerRow:
        return cls(
            id=int(row["id"]),
            name=row["name"],
            timestamp=int(row["timestamp"]),
            executed_at=int(row["executed_at"]),
        )


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@dataclass
class MigrationState:
    """Whether one registered migration has run."""

    name: str
    timestamp: int
    executed: bool


@dataclass
class MigrationStatus:
    """Snapshot of registered vs. executed migrations."""

    migrations: list[MigrationState] = field(default_factory=list)
    orphans: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.migrations)

    @property
    def executed_count(self) -> int:
        return sum(1 for m in self.migrations if m.executed)

    @property
    def pending_count(self) -> int:
        return self.total - self.executed_count

    @property
    def pending(self) -> list[str]:
        return [m.name for m in self.migrations if not m.executed]

    @property
    def state(self) -> str:
        """``"empty"``, ``"up_to_date"`` or ``"pending"``."""
        if not self.migrations:
            return "empty"
        return "pending" if self.pending_count else "up_to_date"

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-safe dictionary."""
        return {
            "state": self.state,
            "total": self.total,
            "executed": self.executed_count,
            "pending": self.pending_count,
            "orphans": list(self.orphans),
            "migrations": [
                {"name": m.name, "timestamp": m.timestamp, "executed": m.executed}
                for m in self.migrations
            ],
        }


@dataclass
class MigrationProgress:
    """Progress report for one step of an up/down run."""

    name: str
    direction: str
    index: int
    total: int
    status: str
    message: str | None = None
