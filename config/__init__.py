import os


def get_settings_module() -> str:
    # APP_ENV selects the settings module; anything unknown means development.
    env = os.getenv("APP_ENV", "development").lower()

    if env in {"prod", "production"}:
        return "config.production"

    if env in {"test", "testing"}:
        return "config.testing"

    return "config.development"


def parse_roles(raw: str) -> tuple[str, ...]:
    """Comma-separated role list, e.g. ``admin,qr-manager``."""
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())
