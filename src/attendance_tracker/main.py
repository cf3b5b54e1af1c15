from __future__ import annotations

import importlib
import logging
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from .attendance.controller import register as register_attendance
from .audit.controller import register as register_audit
from .common.datetime_utils import Clock
from .common.http import register_error_handlers
from .config import get_settings_module
from .container import Container, build_container
from .database.bootstrap import apply_schema, ensure_sample_students, list_tables
from .database.connection import DBConfig
from .settings.controller import register as register_settings
from .settings.model import AttendanceConfiguration
from .students.controller import register as register_students

logger = logging.getLogger(__name__)


def create_app(*, settings_module: Optional[str] = None, clock: Optional[Clock] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    storage_backend = getattr(settings, "STORAGE_BACKEND", "mysql")
    db_config = getattr(settings, "DB_CONFIG", None)
    logger.info("settings=%s storage=%s", settings_module, storage_backend)

    if storage_backend == "mysql":
        target = DBConfig.from_dict(db_config)
        if getattr(settings, "AUTO_INIT_DB", False):
            apply_schema(target)
            logger.info("schema ready (tables=%d)", len(list_tables(target)))
        if getattr(settings, "AUTO_SEED_DB", False):
            added = ensure_sample_students(target)
            logger.info("demo roster ready (%d students added)", added)

    container = build_container(
        storage_backend=storage_backend,
        db_config=db_config,
        defaults=AttendanceConfiguration.parse(
            getattr(settings, "WORK_START_TIME", "07:00"),
            getattr(settings, "LATE_THRESHOLD_MINUTES", 15),
        ),
        lock_timeout=float(getattr(settings, "LOCK_TIMEOUT_SECONDS", 5)),
        clock=clock,
    )
    app.extensions["attendance_container"] = container

    register_error_handlers(app)
    register_students(app, container)
    register_attendance(app, container)
    register_settings(app, container)
    register_audit(app, container)

    return app


def get_container(app: Flask) -> Container:
    return app.extensions["attendance_container"]
