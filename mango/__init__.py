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

"""mango — fluent query builder and schema migrations for MySQL-compatible databases.

Usage::

    from mango import Database, DatabaseConfig, Migration, MigrationEngine

    db = await Database.connect(DatabaseConfig.from_env())
    engine = MigrationEngine(db, load_migrations("./migrations"))
    await engine.migrate_up_to_latest()
"""

from mango.config import DatabaseConfig
from mango.database import Database, TableRegistry
from mango.errors import (
    ConnectivityError,
    DuplicateMigrationError,
    InvalidOperatorError,
    LedgerError,
    MangoError,
    MigrationLoadError,
    MigrationNotFoundError,
    MigrationStepError,
    TableNotFoundError,
    UnknownColumnError,
    ValidationError,
)
from mango.migrations import (
    Migration,
    MigrationEngine,
    MigrationStatus,
    generate_migration_file,
    load_migrations,
)
from mango.query.table import Table
from mango.schema.types import ColumnType

__version__ = "0.3.0"

__all__ = [
    "Database",
    "DatabaseConfig",
    "TableRegistry",
    "Table",
    "ColumnType",
    "Migration",
    "MigrationEngine",
    "MigrationStatus",
    "load_migrations",
    "generate_migration_file",
    "MangoError",
    "ValidationError",
    "UnknownColumnError",
    "InvalidOperatorError",
    "TableNotFoundError",
    "DuplicateMigrationError",
    "MigrationNotFoundError",
    "LedgerError",
    "MigrationStepError",
    "ConnectivityError",
    "MigrationLoadError",
]
