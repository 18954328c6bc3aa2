from logging.config import fileConfig
from alembic import context
from dotenv import load_dotenv
import os


load_dotenv()

from config import get_sync_engine
from models import Base


config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# Schemas and bookkeeping tables owned by the hosting Postgres (Supabase), never ours to diff
EXTERNAL_SCHEMAS = {'auth', 'storage', 'realtime', 'vault', 'supabase_functions', 'extensions',
                    'graphql', 'graphql_public', 'pgsodium', 'pgsodium_masks'}
EXTERNAL_TABLES = {'schema_migrations', 'supabase_migrations'}


def include_object(object, name, type_, reflected, compare_to):
    if getattr(object, 'schema', None) in EXTERNAL_SCHEMAS:
        return False
    if type_ == "table" and name in EXTERNAL_TABLES:
        return False
    return True


def _offline_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL environment variable is required for migrations")
    return database_url.replace("postgresql+asyncpg://", "postgresql://")


def run_migrations_offline() -> None:
    """Emit SQL without a database connection"""
    context.configure(
        url=_offline_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        include_object=include_object,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = get_sync_engine()

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            include_object=include_object,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
