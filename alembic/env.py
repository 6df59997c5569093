import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool, create_engine

from guidetrip.core.config import settings
from guidetrip.db.session import Base

# Import all models so Alembic sees them in metadata
from guidetrip.models.user import User  # noqa: F401
from guidetrip.models.order import Order  # noqa: F401
from guidetrip.models.custom_requirement import CustomRequirement  # noqa: F401
from guidetrip.models.overtime import OvertimeRecord  # noqa: F401
from guidetrip.models.attachment import Attachment  # noqa: F401
from guidetrip.models.check_in import CheckInRecord  # noqa: F401
from guidetrip.models.payment import Payment  # noqa: F401
from guidetrip.models.refund import RefundRecord  # noqa: F401
from guidetrip.models.wallet_log import WalletLog  # noqa: F401
from guidetrip.models.audit_log import AuditLog  # noqa: F401


# Alembic Config object
config = context.config

# sqlalchemy.url always comes from the runtime DATABASE_URL
db_url = getattr(settings, "DATABASE_URL", None) or os.getenv("DATABASE_URL")
if not db_url:
    raise RuntimeError("DATABASE_URL is not set (check .env / guidetrip.core.config.settings)")

config.set_main_option("sqlalchemy.url", db_url)

# Logging config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Target metadata for autogenerate
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
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    url = config.get_main_option("sqlalchemy.url")

    # engine_from_config would not expand env vars in alembic.ini
    connectable = create_engine(url, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
