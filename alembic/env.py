import asyncio
from logging.config import fileConfig
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config
from alembic import context
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from finko.core.config import config as settings  # noqa: E402

# Import your models here so Alembic can detect them
from finko.core.db.base import Base  # noqa: E402
from finko.modules.users.models import User  # noqa: E402,F401
from finko.modules.ledger.models import Expense, Income  # noqa: E402,F401
from finko.modules.bancochile.models import IdentityKey  # noqa: E402,F401
from finko.modules.bank_profiles.models import BankEmailProfile  # noqa: E402,F401
from finko.modules.gmail.models import BankConnection, ProcessedEmail  # noqa: E402,F401

# this is the Alembic Config object
config = context.config

config.set_main_option("sqlalchemy.url", settings.db_url)

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# add your model's MetaData object here for 'autogenerate' support
target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=True,
        render_as_batch=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        render_as_batch=True,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """The app's drivers (asyncpg, aiosqlite) are async, so migrate through them too."""
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
