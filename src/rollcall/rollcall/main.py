from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from .attendance.controller import register as register_attendance
from .audit.controller import register as register_audit
from .common.http import register_error_handlers
from .config import get_settings_module
from .container import Container, build_container
from .core.constants import DEFAULT_EDIT_WINDOW_DAYS, DEFAULT_TIMEZONE
from .database.bootstrap import apply_schema, list_tables
from .database.connection import DBConfig, DatabaseConnection
from .roster.controller import register as register_roster

logger = logging.getLogger(__name__)


def create_app(container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    logging.basicConfig(
        level=str(getattr(settings, "LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if container is None:
        db_config = getattr(settings, "DB_CONFIG")
        logger.info(
            "settings=%s db=%s@%s:%s/%s",
            settings_module,
            db_config.get("user"),
            db_config.get("host"),
            db_config.get("port", 3306),
            db_config.get("database"),
        )

        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))
            schema_path = Path(__file__).resolve().parents[3] / "database" / "schema.sql"
            apply_schema(conn, schema_path=schema_path)
            logger.info("schema ready (tables=%d)", len(list_tables(conn)))

        container = build_container(
            db_config=db_config,
            edit_window_days=int(getattr(settings, "EDIT_WINDOW_DAYS", DEFAULT_EDIT_WINDOW_DAYS)),
            tz_name=str(getattr(settings, "TIMEZONE", DEFAULT_TIMEZONE)),
            auto_reconcile=bool(getattr(settings, "AUTO_RECONCILE_ON_MARK", True)),
        )

    app.extensions["rollcall"] = container
    register_error_handlers(app)
    register_roster(app, container)
    register_attendance(app, container)
    register_audit(app, container)

    return app
