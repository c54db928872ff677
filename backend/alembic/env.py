"""
Alembic environment for the pollen SQLite store.

The revisions execute raw SQL, so there is no target metadata. The database
comes from, in order: the sqlalchemy.url option (ensure_schema sets it),
DATABASE_PATH, then pollen/data/pollen.db under backend/.
"""

import os
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import create_engine

config = context.config

# Only the alembic CLI passes an ini file; programmatic runs keep the app's logging
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def resolve_url() -> str:
    url = config.get_main_option("sqlalchemy.url")
    if url:
        return url

    db_path = os.getenv("DATABASE_PATH")
    if not db_path:
        db_path = str(Path(__file__).parent.parent / "pollen" / "data" / "pollen.db")
    return f"sqlite:///{db_path}"


def run_offline() -> None:
    """Emit SQL to stdout instead of touching a database."""
    context.configure(
        url=resolve_url(),
        target_metadata=None,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    engine = create_engine(resolve_url())
    try:
        with engine.connect() as connection:
            context.configure(connection=connection, target_metadata=None)
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
