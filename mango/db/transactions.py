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

"""Transaction context manager."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

logger = logging.getLogger(__name__)


@asynccontextmanager
async def transaction(executor: Any) -> AsyncGenerator[Any, None]:
    """Context manager that commits on success, rolls back on exception.

    Usage::

        async with transaction(executor):
            await execute(executor, "INSERT INTO ...")
            await execute(executor, "UPDATE ...")
        # auto-committed here

    SQLite runs in autocommit mode, so ``BEGIN`` is issued explicitly.
    For MySQL the executor pins one pooled connection to the current task
    until the transaction ends.

    Note that MySQL commits implicitly on DDL (``CREATE``/``ALTER``/``DROP``),
    so wrapping schema changes in a transaction does not make them atomic
    there.
    """
    await executor.begin()
    try:
        yield executor
    except Exception:
        logger.debug("Rolling back transaction")
        await executor.rollback()
        raise
    await executor.commit()
