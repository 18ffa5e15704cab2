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

"""Connection settings.

Explicit values always win; anything left unset can be filled from
``MANGO_*`` environment variables via :meth:`DatabaseConfig.from_env`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any

from mango.errors import ValidationError

BACKENDS = ("mysql", "sqlite")
DEFAULT_LEDGER_TABLE = "mango_migrations"

_ENV_PREFIX = "MANGO_DB_"


@dataclass
class DatabaseConfig:
    """Where and how to connect.

    Attributes:
        backend: ``"mysql"`` (server, via aiomysql) or ``"sqlite"`` (file or
            ``":memory:"``, via aiosqlite).
        path: SQLite database path; ignored for MySQL.
        host, port, user, password, database: MySQL server settings.
        connection_limit: Maximum pool size for MySQL.
        connect_timeout: Seconds to wait for a MySQL connection.
        charset: MySQL connection charset.
        ledger_table: Name of the migration ledger table.
    """

    backend: str = "mysql"
    path: str = ":memory:"
    host: str = "localhost"
    port: int = 3306
    user: str = "root"
    password: str = ""
    database: str = ""
    connection_limit: int = 10
    connect_timeout: int = 10
    charset: str = "utf8mb4"
    ledger_table: str = DEFAULT_LEDGER_TABLE

    def __post_init__(self) -> None:
        self.backend = self.backend.lower()
        if self.backend not in BACKENDS:
            raise ValidationError(
                f"Unknown backend {self.backend!r}. Available: {list(BACKENDS)}"
            )
        if self.port <= 0:
            raise ValidationError(f"Invalid port: {self.port}")
        if self.connection_limit <= 0:
            raise ValidationError(f"Invalid connection limit: {self.connection_limit}")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides: Any) -> DatabaseConfig:
        """Build a config from ``MANGO_DB_*`` variables.

        Keyword *overrides* that are not ``None`` take precedence over the
        environment.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        for name, var, convert in (
            ("backend", "BACKEND", str),
            ("path", "PATH", str),
            ("host", "HOST", str),
            ("port", "PORT", int),
            ("user", "USER", str),
            ("password", "PASSWORD", str),
            ("database", "NAME", str),
            ("connection_limit", "CONNECTION_LIMIT", int),
            ("connect_timeout", "CONNECT_TIMEOUT", int),
            ("charset", "CHARSET", str),
        ):
            raw = env.get(_ENV_PREFIX + var)
            if raw is None or raw == "":
                continue
            try:
                values[name] = convert(raw)
            except ValueError:
                raise ValidationError(f"Invalid value for {_ENV_PREFIX}{var}: {raw!r}")

        ledger_table = env.get("MANGO_LEDGER_TABLE")
        if ledger_table:
            values["ledger_table"] = ledger_table

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def with_sqlite(self, path: str) -> DatabaseConfig:
        """Return a copy pointing at a SQLite database file."""
        return replace(self, backend="sqlite", path=path)
