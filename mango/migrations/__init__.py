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

"""Migrations module — records, ledger, engine, file loading and scaffolding."""

from mango.migrations.engine import MigrationEngine
from mango.migrations.ledger import Ledger
from mango.migrations.loader import load_migrations
from mango.migrations.models import (
    LedgerRow,
    Migration,
    MigrationProgress,
    MigrationState,
    MigrationStatus,
)
from mango.migrations.scaffold import generate_migration_file, render_migration

__all__ = [
    "MigrationEngine",
    "Migration",
    "Ledger",
    "LedgerRow",
    "MigrationState",
    "MigrationStatus",
    "MigrationProgress",
    "load_migrations",
    "generate_migration_file",
    "render_migration",
]
