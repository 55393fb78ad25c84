import os


def get_settings_module() -> str:
    # APP_ENV selects the settings module, development by default
    env = os.getenv("APP_ENV", "development").lower()

    if env in {"prod", "production"}:
        return "rollcall.config.production"

    if env in {"test", "testing"}:
        return "rollcall.config.testing"

    return "rollcall.config.development"
