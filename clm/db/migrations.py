"""Alembic helper utilities for programmatic migrations."""
from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config

BASE_PATH = Path(__file__).resolve().parents[2]


def _config(database_url: str) -> Config:
    alembic_cfg = Config(str(BASE_PATH / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(BASE_PATH / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)
    alembic_cfg.attributes["database_url_override"] = database_url
    # Keep the application's logging setup
    alembic_cfg.attributes["configure_logger"] = False
    return alembic_cfg


def run_migrations(database_url: str) -> None:
    """Run Alembic migrations up to the latest revision."""
    command.upgrade(_config(database_url), "head")


def downgrade_migrations(database_url: str, revision: str = "base") -> None:
    """Roll the schema back to ``revision``."""
    command.downgrade(_config(database_url), revision)
