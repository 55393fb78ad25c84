from __future__ import annotations

import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT / "src" / "rollcall") not in sys.path:
    sys.path.insert(0, str(REPO_ROOT / "src" / "rollcall"))

from dotenv import load_dotenv

from rollcall.config import get_settings_module
from rollcall.database.bootstrap import apply_schema, list_tables
from rollcall.database.connection import DBConfig, DatabaseConnection


def main() -> None:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(dict(settings.DB_CONFIG)))

    apply_schema(conn, schema_path=REPO_ROOT / "database" / "schema.sql")
    cfg = conn.config
    print(f"OK: applied schema.sql -> {cfg.user}@{cfg.host}:{cfg.port}/{cfg.database} (tables={len(list_tables(conn))})")


if __name__ == "__main__":
    main()
