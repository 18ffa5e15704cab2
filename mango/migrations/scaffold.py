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
"""Create new migration files from a template.

The skeleton is ``migration.py.j2``.  A project can override it by passing
``template_dir``; a directory without that file falls back to the copy
shipped in ``mango/templates``.
"""

from __future__ import annotations

import logging
import re
import time
from pathlib import Path

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, StrictUndefined

from mango.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
MIGRATION_TEMPLATE = "migration.py.j2"

_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _environment(template_dir: str | Path | None) -> Environment:
    loaders = [FileSystemLoader(str(DEFAULT_TEMPLATE_DIR))]
    if template_dir is not None:
        loaders.insert(0, FileSystemLoader(str(Path(template_dir).expanduser())))
    return Environment(
        loader=ChoiceLoader(loaders),
        keep_trailing_newline=True,
        undefined=StrictUndefined,
        autoescape=False,  # output is Python source
    )


def render_migration(name: str, timestamp: int, *, template_dir: str | Path | None = None) -> str:
    """Return the source of a new migration module."""
    template = _environment(template_dir).get_template(MIGRATION_TEMPLATE)
    return template.render(name=name, timestamp=timestamp)


def generate_migration_file(
    name: str,
    output_dir: str | Path = "./migrations",
    *,
    timestamp: int | None = None,
    template_dir: str | Path | None = None,
) -> Path:
    """Write ``<timestamp>_<name>.py`` into *output_dir* and return its path.

    Args:
        name: Migration name; becomes ``Migration.name``.
        output_dir: Created if missing.
        timestamp: Ordering key; defaults to the current epoch milliseconds.
        template_dir: Directory whose ``migration.py.j2`` overrides the
            packaged template.
    """
    if not isinstance(name, str) or not _NAME.match(name):
        raise ValidationError(f"Invalid migration name: {name!r}")
    if timestamp is None:
        timestamp = int(time.time() * 1000)

    source = render_migration(name, timestamp, template_dir=template_dir)

    output_dir = Path(output_dir).expanduser()
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"{timestamp}_{name}.py"
    if path.exists():
        raise ValidationError(f"Migration file already exists: {path}")
    path.write_text(source, encoding="utf-8")

    logger.info("Created migration: %s", path)
    return path
