from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from api.database import metadata as target_metadata
from config import DATABASE_URL

config = context.config

# URL precedence: `alembic -x database_url=...`, a URL already set on the Config
# (programmatic use), then NOWSHOWING_DATABASE_URL / the default SQLite file
database_url = (
    context.get_x_argument(as_dictionary=True).get("database_url")
    or config.get_main_option("sqlalchemy.url")
    or DATABASE_URL
)
config.set_main_option("sqlalchemy.url", database_url)

if config.config_file_name is not None:
    # Keep application loggers (already configured by the time migrations run) enabled
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def _render_as_batch(url: str) -> bool:
    # SQLite cannot ALTER most constraints in place; batch mode rebuilds the table
    return url.startswith("sqlite")


def run_migrations_offline() -> None:
    """Emit SQL to stdout without connecting (``alembic upgrade head --sql``)."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=_render_as_batch(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against a live connection."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=_render_as_batch(config.get_main_option("sqlalchemy.url")),
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
