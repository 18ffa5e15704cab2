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

"""Error types raised by mango.

Every error derives from :class:`MangoError` so callers can catch the whole
family, and branch on the concrete type instead of matching messages:

- :class:`ValidationError` — a builder call or registration was malformed.
  Raised before any SQL reaches the database; never worth retrying.
- :class:`LedgerError` — the migration ledger could not be created or
  written.
- :class:`MigrationStepError` — a migration's own ``up``/``down`` failed.
- :class:`ConnectivityError` — a connection or pool could not be opened.

The underlying driver exception is always chained as ``__cause__``.
"""

from __future__ import annotations


class MangoError(Exception):
    """Base class for all mango errors."""


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationError(MangoError, ValueError):
    """A builder call, identifier or registration was rejected."""


class UnknownColumnError(ValidationError):
    """A column was referenced that the table does not have."""

    def __init__(self, table: str, column: str) -> None:
        super().__init__(f"Column {column!r} does not exist in table {table!r}")
        self.table = table
        self.column = column


class InvalidOperatorError(ValidationError):
    """A comparison operator outside the supported set was used."""

    def __init__(self, operator: str) -> None:
        super().__init__(f"Invalid operator: {operator!r}")
        self.operator = operator


class TableNotFoundError(ValidationError):
    """No table with the requested name is registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Table not found: {name!r}")
        self.name = name


class DuplicateMigrationError(ValidationError):
    """A migration with the same name is already registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Migration already registered: {name!r}")
        self.name = name


class MigrationNotFoundError(ValidationError):
    """The ledger names a migration that is no longer registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Migration not found: {name!r}")
        self.name = name


# ---------------------------------------------------------------------------
# Runtime
# ---------------------------------------------------------------------------


class LedgerError(MangoError):
    """Creating, reading or writing the migration ledger failed.

    Attributes:
        migration: Name of the migration being recorded, if any.
        phase: ``"initialize"``, ``"record"`` or ``"remove"``.
    """

    def __init__(self, message: str, *, phase: str, migration: str | None = None) -> None:
        super().__init__(message)
        self.phase = phase
        self.migration = migration


class MigrationStepError(MangoError):
    """A migration's ``up`` or ``down`` procedure raised.

    Attributes:
        migration: Name of the failing migration.
        phase: ``"up"`` or ``"down"``.
    """

    def __init__(self, migration: str, phase: str, cause: BaseException) -> None:
        super().__init__(f"Migration {migration!r} failed during {phase}: {cause}")
        self.migration = migration
        self.phase = phase


class ConnectivityError(MangoError):
    """Opening a database connection or pool failed."""


class MigrationLoadError(MangoError):
    """A migration file could not be imported."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot load migration file {path}: {reason}")
        self.path = path
