from logging.config import fileConfig
from alembic import context
from sqlalchemy import engine_from_config, pool

# read the URL from scrapline.config (.env) so it is not duplicated in alembic.ini
from scrapline.config import settings
from scrapline.models import metadata

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# keep the URL in sync for both offline and online runs
config.set_main_option("sqlalchemy.url", settings.database_url.replace("%", "%%"))

target_metadata = metadata

def run_migrations_offline():
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()

def run_migrations_online():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
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
