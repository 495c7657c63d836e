# =============================================================================
# ⚙️ Alembic environment (property item QR)
# -----------------------------------------------------------------------------
# Loads .env, takes the connection from DATABASE_URL and registers all models.
# =============================================================================

import os
import sys
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool

# -------------------------------------------------------------------------
# 🔹 .env + project root
# -------------------------------------------------------------------------
load_dotenv()
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# -------------------------------------------------------------------------
# 🔹 Alembic config
# -------------------------------------------------------------------------
config = context.config
if config.config_file_name:
    fileConfig(config.config_file_name)

SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./qr_items.db")
config.set_main_option("sqlalchemy.url", SQLALCHEMY_DATABASE_URL.replace("%", "%%"))

# -------------------------------------------------------------------------
# 🔹 models, so autogenerate sees every table
# -------------------------------------------------------------------------
from database import Base  # noqa: E402
from models import Item, Property, QRCode, QRScan  # noqa: E402,F401

target_metadata = Base.metadata


# -------------------------------------------------------------------------
# 🔹 offline mode
# -------------------------------------------------------------------------
def run_migrations_offline() -> None:
    """Emits SQL without a connection (e.g. for review in CI)."""
    context.configure(
        url=SQLALCHEMY_DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        render_as_batch=SQLALCHEMY_DATABASE_URL.startswith("sqlite"),
    )

    with context.begin_transaction():
        context.run_migrations()


# -------------------------------------------------------------------------
# 🔹 online mode
# -------------------------------------------------------------------------
def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section) or {}

    connectable = engine_from_config(
        section,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
