from __future__ import annotations
from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context
import os, sys

# backend/ on path so the orderflow package imports without installation
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from orderflow.models.authz import Base  # noqa: E402
import orderflow.models.menu_item  # noqa: E402,F401
import orderflow.models.setting  # noqa: E402,F401
import orderflow.models.order  # noqa: E402,F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

config.set_main_option('sqlalchemy.url', os.getenv('DATABASE_URL', 'sqlite:///dev.db'))
target_metadata = Base.metadata


def run_offline():
    context.configure(
        url=config.get_main_option('sqlalchemy.url'),
        target_metadata=target_metadata,
        literal_binds=True,
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online():
    engine = engine_from_config(config.get_section(config.config_ini_section), prefix='sqlalchemy.', poolclass=pool.NullPool)
    with engine.connect() as connection:
        # batch mode so ALTERs work on SQLite
        context.configure(connection=connection, target_metadata=target_metadata, render_as_batch=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
