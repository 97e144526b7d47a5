"""Single source of truth for all configuration and secrets.

All modules import from here — never from os.environ directly.

Values are read from a plain .env file (``secrets/internal.env`` by default,
or the path in PAPERMIRROR_ENV_FILE) and overridden by the process
environment. Keep the .env file at chmod 600; it holds the API token.
"""

import os
from pathlib import Path

from dotenv import dotenv_values

PROJECT_ROOT = Path(__file__).resolve().parent.parent

ENV_FILE = Path(
    os.environ.get("PAPERMIRROR_ENV_FILE", str(PROJECT_ROOT / "secrets" / "internal.env"))
)


def _load(path: Path) -> dict[str, str | None]:
    """Merge the dotenv file (if present) with the process environment."""
    values: dict[str, str | None] = dict(dotenv_values(path)) if path.exists() else {}
    values.update(os.environ)
    return values


def parse_tag_ids(raw: str | None) -> tuple[int, ...]:
    """Parse a comma-separated list of tag ids (``"3, 17"`` -> ``(3, 17)``)."""
    if not raw:
        return ()
    return tuple(int(part) for part in raw.split(",") if part.strip())


_internal = _load(ENV_FILE)

# --- Paperless-ngx ---
PAPERLESS_BASE_URL: str = _internal.get("PAPERLESS_BASE_URL") or ""
PAPERLESS_API_TOKEN: str = _internal.get("PAPERLESS_API_TOKEN") or ""

# --- Mirror ---
INSTANCE_ID: str = _internal.get("PAPERMIRROR_INSTANCE_ID") or "default"
INSTANCE_NAME: str = _internal.get("PAPERMIRROR_INSTANCE_NAME") or "Paperless"
MIRROR_DB_PATH: str = _internal.get("PAPERMIRROR_DB_PATH") or str(
    PROJECT_ROOT / "data" / "mirror.db"
)
IMPORT_FILTER_TAGS: tuple[int, ...] = parse_tag_ids(
    _internal.get("PAPERMIRROR_IMPORT_FILTER_TAGS")
)
PAGE_SIZE: int = int(_internal.get("PAPERMIRROR_PAGE_SIZE") or "100")
