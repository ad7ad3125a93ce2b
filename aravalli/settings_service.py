# aravalli/settings_service.py
import copy
import json
from dataclasses import dataclass
from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .data import models_db
from .errors import StorageError
from .log import get_logger

logger = get_logger(__name__)

GLOBAL_CONFIG_KEY = "global_config"

DEFAULT_CONFIG: Dict[str, Any] = {
    "theme": {
        "primary": "#10b981",
        "background": "#fafafa",
        "text": "#18181b",
        "radius": "0.75rem",
    },
    "features": {
        "showChatbot": True,
        "showSuggestions": True,
        "showHistory": True,
        "showMap": True,
    },
    "content": {
        "appName": "Aravalli Watch",
        "welcomeMessage": "Eco-Monitoring System",
    },
}


def default_config() -> Dict[str, Any]:
    return copy.deepcopy(DEFAULT_CONFIG)


@dataclass
class ConfigRecord:
    config: Dict[str, Any]
    version: int


class SettingsService:
    """The single `global_config` document.

    Reads always go to the store. Writes replace the whole document and
    bump its version; concurrent writers are last-write-wins.
    """

    def __init__(self, db: Session):
        self.db = db

    def _row(self):
        return self.db.get(models_db.Setting, GLOBAL_CONFIG_KEY)

    def get_record(self) -> ConfigRecord:
        row = self._row()
        if row is None:
            return ConfigRecord(config=default_config(), version=0)
        return ConfigRecord(config=json.loads(row.value), version=row.version)

    def get(self) -> Dict[str, Any]:
        return self.get_record().config

    def set(self, new_config: Dict[str, Any]) -> int:
        try:
            row = self._row()
            if row is None:
                row = models_db.Setting(key=GLOBAL_CONFIG_KEY, value=json.dumps(new_config), version=1)
                self.db.add(row)
            else:
                row.value = json.dumps(new_config)
                row.version = row.version + 1
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Settings update error")
            raise StorageError("Failed to update settings") from e
        logger.info("Settings updated to version %s", row.version)
        return row.version

    def ensure_defaults(self) -> bool:
        """Insert the default document if missing. Returns True when a row was created."""
        if self._row() is not None:
            return False
        self.db.add(models_db.Setting(key=GLOBAL_CONFIG_KEY, value=json.dumps(DEFAULT_CONFIG), version=1))
        self.db.commit()
        logger.info("Default settings created")
        return True
