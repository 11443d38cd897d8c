from __future__ import annotations

from contextlib import ExitStack, closing
from importlib import resources
from pathlib import Path
import sqlite3

from alembic import command as alembic_command
from alembic.config import Config as AlembicConfig
from sanic.log import logger


_MIGRATIONS_PACKAGE = "commitstatus.db_migration_scripts"

# schema created by StatusStore.initialize()
BASELINE_REVISION = "0001_initial"


def _alembic_config(db_path: Path, script_location: Path) -> AlembicConfig:
    cfg = AlembicConfig()
    cfg.set_main_option("script_location", str(script_location))
    cfg.set_main_option("sqlalchemy.url", f"sqlite:///{db_path}")
    return cfg


def _table_names(db_path: Path) -> set[str]:
    if not db_path.exists():
        return set()
    with closing(sqlite3.connect(str(db_path))) as conn:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        return {row[0] for row in rows.fetchall()}


def needs_baseline(db_path: str | Path) -> bool:
    """True for a database laid out by the store but never seen by alembic."""
    tables = _table_names(Path(db_path))
    return "commit_statuses" in tables and "alembic_version" not in tables


def migrate_db(path: str | Path, revision: str = "head") -> None:
    db_path = Path(path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with ExitStack() as stack:
        script_location = stack.enter_context(
            resources.as_file(resources.files(_MIGRATIONS_PACKAGE))
        )
        cfg = _alembic_config(db_path, script_location)
        if needs_baseline(db_path):
            logger.info(
                "Stamping %s at %s before migrating", db_path, BASELINE_REVISION
            )
            alembic_command.stamp(cfg, BASELINE_REVISION)
        alembic_command.upgrade(cfg, revision)
