# migrations/env.py
from __future__ import annotations

from logging.config import fileConfig
import sys
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool

# --- Añadir la raíz del proyecto al sys.path ---
BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))

# --- Imports de la app ---
from app.core.config import settings
from app.db.session import Base

# IMPORTANTE: importar todos los modelos para poblar Base.metadata
# (app/models no tiene __init__.py, van explícitos)
from app.models import user     # noqa: F401  # User, Address
from app.models import product  # noqa: F401  # Product
from app.models import coupon   # noqa: F401  # Coupon
from app.models import cart     # noqa: F401  # Cart, CartItem
from app.models import order    # noqa: F401  # PaymentMethod, Order, OrderItem

# --- Config de Alembic ---
config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Alembic siempre corre con el driver sincrónico
alembic_url = settings.DATABASE_URL
if alembic_url.startswith("postgresql+asyncpg"):
    alembic_url = alembic_url.replace("+asyncpg", "+psycopg")
elif alembic_url.startswith("sqlite+aiosqlite"):
    alembic_url = alembic_url.replace("+aiosqlite", "")

config.set_main_option("sqlalchemy.url", alembic_url)

# Metadata objetivo para autogenerate
target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Ejecuta migraciones en modo offline (sin Engine)."""
    context.configure(
        url=alembic_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Ejecuta migraciones en modo online (con Engine/Connection)."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            compare_server_default=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
