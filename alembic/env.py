"""Alembic env.py — async migrations for ClinicDesk."""

import asyncio
import sys
import os

# Add project root to path so 'clinic_api' is importable when running alembic
# from any working directory
_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine

from alembic import context

from clinic_api.core.config import settings
from clinic_api.core.database import Base
from clinic_api.models.clinic import Clinic  # noqa: F401 — ensure models are registered
from clinic_api.models.user import User  # noqa: F401
from clinic_api.models.appointment import Appointment  # noqa: F401
from clinic_api.models.subscription_plan import SubscriptionPlan  # noqa: F401
from clinic_api.models.subscription import Subscription  # noqa: F401
from clinic_api.models.invoice import Invoice  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    url = settings.DATABASE_URL
    context.configure(url=url, target_metadata=target_metadata, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    connectable = create_async_engine(settings.DATABASE_URL, poolclass=pool.NullPool)
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
