# aravalli/crud_analyses.py
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .data import models_db
from .errors import NotFoundError, StorageError
from .log import get_logger
from .simulator import SimulatedReading

logger = get_logger(__name__)


def create_analysis(db: Session, location_name: str, image_url: str,
                    reading: SimulatedReading) -> models_db.Analysis:
    db_analysis = models_db.Analysis(
        location_name=location_name,
        ndvi_score=reading.ndvi,
        degradation_status=reading.status,
        construction_detected=reading.is_construction,
        nightlight_intensity=reading.nightlight,
        is_legal_construction=reading.is_legal,
        image_url=image_url,
    )
    db.add(db_analysis)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to save analysis for %s", location_name)
        raise StorageError("Failed to save analysis") from e
    db.refresh(db_analysis)
    return db_analysis


def list_recent_analyses(db: Session, limit: int = 50) -> List[models_db.Analysis]:
    return db.query(models_db.Analysis)\
             .order_by(models_db.Analysis.timestamp.desc(), models_db.Analysis.id.desc())\
             .limit(limit)\
             .all()


def get_analysis_by_id(db: Session, analysis_id: int):
    return db.query(models_db.Analysis).filter(models_db.Analysis.id == analysis_id).first()


def set_verified(db: Session, analysis_id: int, correct: bool) -> models_db.Analysis:
    db_analysis = get_analysis_by_id(db, analysis_id)
    if db_analysis is None:
        raise NotFoundError("Analysis not found")
    db_analysis.user_verified = bool(correct)
    db.commit()
    db.refresh(db_analysis)
    return db_analysis


# --- Prompt history ---
def add_prompt(db: Session, prompt: str) -> models_db.PromptHistory:
    item = models_db.PromptHistory(prompt=prompt)
    db.add(item)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to save prompt")
        raise StorageError("Failed to save prompt") from e
    db.refresh(item)
    return item


def list_prompts(db: Session, limit: int = 10) -> List[models_db.PromptHistory]:
    return db.query(models_db.PromptHistory)\
             .order_by(models_db.PromptHistory.timestamp.desc(), models_db.PromptHistory.id.desc())\
             .limit(limit)\
             .all()


def count_prompts(db: Session) -> int:
    return db.query(models_db.PromptHistory).count()
