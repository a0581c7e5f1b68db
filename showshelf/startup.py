import json
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from showshelf.database import Database
from showshelf.models.config import Config
from showshelf.services.scanner import DEFAULT_MAX_DEPTH, DEFAULT_VIDEO_EXTENSIONS, ScanSettings


logger = logging.getLogger(__name__)


DEFAULT_CONFIGS = [
    # key, value, module, data_type, description
    ("log_level", "INFO", "logging", "string", "Log-Level (DEBUG, INFO, WARNING, ERROR)"),
    ("video_extensions", ",".join(sorted(DEFAULT_VIDEO_EXTENSIONS)), "scanner", "string", "Dateiendungen, die als Episode zählen"),
    ("scan_max_depth", str(DEFAULT_MAX_DEPTH), "scanner", "integer", "Maximale Verzeichnistiefe unterhalb einer Show"),
    ("casefold_paths", "", "scanner", "boolean", "Pfade ohne Groß-/Kleinschreibung vergleichen (leer = Plattform-Default)"),
    ("library_roots", "[]", "scanner", "json", "Library-Verzeichnisse für den kompletten Rescan"),
]


def init_config(database: Database):
    """Initialize default configs"""
    with database.transaction() as db:
        for key, value, module, data_type, description in DEFAULT_CONFIGS:
            existing = db.query(Config).filter_by(key=key).first()
            if not existing:
                db.add(Config(
                    key=key,
                    value=value,
                    module=module,
                    data_type=data_type,
                    description=description,
                ))
                logger.info(f"✓ Added config: {key}")
    logger.info("✓ Base config initialized")


def get_config_value(db: Session, key: str, default=None):
    config = db.query(Config).filter_by(key=key).first()
    if not config or config.value in (None, ""):
        return default
    try:
        return config.typed_value
    except (ValueError, json.JSONDecodeError) as e:
        logger.warning(f"Invalid value for config {key}: {e}")
        return default


def set_config_value(database: Database, key: str, value: str, data_type: str = "string"):
    with database.transaction() as db:
        config = db.query(Config).filter_by(key=key).first()
        if not config:
            config = Config(key=key, data_type=data_type)
            db.add(config)
        config.value = value


def load_scan_settings(db: Session) -> ScanSettings:
    raw_extensions = get_config_value(db, "video_extensions", "")
    extensions = frozenset(
        ext.strip().lstrip(".").lower() for ext in raw_extensions.split(",") if ext.strip()
    )
    return ScanSettings(
        video_extensions=extensions or DEFAULT_VIDEO_EXTENSIONS,
        max_depth=get_config_value(db, "scan_max_depth", DEFAULT_MAX_DEPTH),
        casefold=get_config_value(db, "casefold_paths", None),
    )


def get_library_roots(db: Session) -> List[str]:
    roots = get_config_value(db, "library_roots", [])
    if not isinstance(roots, list):
        logger.warning("Config library_roots is not a list, ignoring")
        return []
    return [str(root) for root in roots]


def add_library_root(database: Database, root: str) -> List[str]:
    """Registriert ein Library-Verzeichnis für scan_all()"""
    with database.session() as db:
        roots = get_library_roots(db)
    if root not in roots:
        roots.append(root)
        set_config_value(database, "library_roots", json.dumps(roots), data_type="json")
        logger.info(f"✓ Added library root: {root}")
    return roots


def get_log_level_from_db(database: Database) -> Optional[str]:
    """Lese Log-Level aus Datenbank, mit Fallback"""
    try:
        with database.session() as db:
            level = get_config_value(db, "log_level", None)
    except Exception as e:
        logger.warning(f"Could not read log_level from DB: {e}")
        return None
    return level.upper() if level else None
