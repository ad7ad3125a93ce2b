# aravalli/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from . import config
from .log import get_logger

logger = get_logger(__name__)

# --- ADAPTABLE DATABASE CONFIGURATION ---

if config.DATABASE_URL:
    logger.info("DATABASE_URL found, using configured database.")
    SQLALCHEMY_DATABASE_URL = config.DATABASE_URL
    if SQLALCHEMY_DATABASE_URL.startswith("postgres://"):
        SQLALCHEMY_DATABASE_URL = SQLALCHEMY_DATABASE_URL.replace("postgres://", "postgresql://", 1)
else:
    logger.info("DATABASE_URL not set, using local SQLite at %s", config.SQLITE_PATH)
    SQLALCHEMY_DATABASE_URL = f"sqlite:///{config.SQLITE_PATH}"

connect_args = {}
if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


# One DB session per request (FastAPI dependency)
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
