# aravalli/bootstrap.py
from sqlalchemy.orm import Session

from . import config, crud_users
from .data import models_db  # noqa: F401  (registers the tables on Base.metadata)
from .database import Base
from .log import get_logger
from .settings_service import SettingsService

logger = get_logger(__name__)


def create_tables(engine) -> None:
    logger.info("Checking/creating database tables...")
    Base.metadata.create_all(bind=engine)


def seed(db: Session) -> None:
    """Idempotent startup data: default settings, test user, admin account."""
    SettingsService(db).ensure_defaults()

    if config.SEED_TEST_USER and crud_users.get_user_by_username(db, "user") is None:
        crud_users.ensure_user(db, "user", "user", role="user")
        logger.info("Created test user 'user'")

    legacy = config.LEGACY_ADMIN_USERNAME
    if legacy and legacy != config.ADMIN_USERNAME:
        if crud_users.delete_user(db, legacy):
            logger.info("Removed legacy admin account %r", legacy)

    if config.ADMIN_PASSWORD:
        crud_users.ensure_user(db, config.ADMIN_USERNAME, config.ADMIN_PASSWORD, role="admin")
        logger.info("Admin account %r ready", config.ADMIN_USERNAME)
    else:
        logger.warning("AW_ADMIN_PASSWORD not set; no admin account was seeded")


def run(engine, session_factory) -> None:
    create_tables(engine)
    db = session_factory()
    try:
        seed(db)
    finally:
        db.close()
