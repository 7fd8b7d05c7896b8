# school_roster/db/bootstrap.py
import os
from alembic import command
from alembic.config import Config

from school_roster.core.logging import get_logger, log_with_context
from school_roster.db.session import SessionLocal, SQLALCHEMY_DATABASE_URL
from school_roster.db.init_db import init_db

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))

logger = get_logger("db")

def run_migrations_and_seed() -> None:
    cfg = Config(os.path.join(BASE_DIR, "alembic.ini"))
    cfg.set_main_option("script_location", os.path.join(BASE_DIR, "migrations"))
    cfg.set_main_option("sqlalchemy.url", SQLALCHEMY_DATABASE_URL)

    command.upgrade(cfg, "head")
    log_with_context(logger, "INFO", "Migrations applied")

    with SessionLocal() as db:
        init_db(db)
    log_with_context(logger, "INFO", "Seed complete")
