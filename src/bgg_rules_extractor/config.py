"""
Configuration for the BGG Rules Extractor.

Defaults live in module-level constants; ``Settings`` bundles them so a
run can override any of them via keyword arguments or ``BGG_*``
environment variables.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional

# -------------------------------------------------------
# CONSTANTS
# -------------------------------------------------------

# Site URLs
BASE_URL = "https://boardgamegeek.com"
FORUM_INDEX_TEMPLATE = "{base_url}/boardgame/{subject_id}/forums/0"
SUBJECT_URL_TEMPLATE = "{base_url}/boardgame/{subject_id}"

# The forum section we export
FORUM_NAME = "Rules"

# Politeness: fixed delay between page fetches, in seconds
REQUEST_DELAY = 0.5
REQUEST_TIMEOUT = 30.0

# Safety cap on the number of threads collected in one run
MAX_THREADS = 1000

INCLUDE_PREVIEWS = False

# Remote store defaults (Google Drive v3)
DEFAULT_CONTAINER = "root"
DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

ENV_PREFIX = "BGG_"


@dataclass(frozen=True)
class Settings:
    """
    Run-wide settings.

    Attributes:
        base_url: Site root used to build subject and forum-index URLs
        forum_name: Name of the forum section to export (e.g. "Rules")
        request_delay: Seconds awaited between successive page fetches
        request_timeout: Transport timeout for a single request
        max_threads: Safety cap on collected thread URLs
        include_previews: Add a first-post preview to each thread block
        default_container: Destination folder when none is chosen
        selectors_file: Optional JSON file overriding selector strategies
    """
    base_url: str = BASE_URL
    forum_name: str = FORUM_NAME
    request_delay: float = REQUEST_DELAY
    request_timeout: float = REQUEST_TIMEOUT
    max_threads: int = MAX_THREADS
    include_previews: bool = INCLUDE_PREVIEWS
    default_container: str = DEFAULT_CONTAINER
    forum_index_template: str = FORUM_INDEX_TEMPLATE
    subject_url_template: str = SUBJECT_URL_TEMPLATE
    selectors_file: Optional[Path] = None

    def forum_index_url(self, subject_id: str) -> str:
        return self.forum_index_template.format(
            base_url=self.base_url.rstrip("/"), subject_id=subject_id
        )

    def subject_url(self, subject_id: str) -> str:
        return self.subject_url_template.format(
            base_url=self.base_url.rstrip("/"), subject_id=subject_id
        )

    def with_overrides(self, **overrides) -> "Settings":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from ``BGG_*`` environment variables.

        Recognised: BGG_BASE_URL, BGG_FORUM_NAME, BGG_REQUEST_DELAY,
        BGG_REQUEST_TIMEOUT, BGG_MAX_THREADS, BGG_INCLUDE_PREVIEWS,
        BGG_DEFAULT_CONTAINER, BGG_SELECTORS_FILE. Unset variables keep
        their defaults.
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            return value if value not in (None, "") else None

        delay = get("REQUEST_DELAY")
        timeout = get("REQUEST_TIMEOUT")
        max_threads = get("MAX_THREADS")
        previews = get("INCLUDE_PREVIEWS")
        selectors_file = get("SELECTORS_FILE")

        return cls().with_overrides(
            base_url=get("BASE_URL"),
            forum_name=get("FORUM_NAME"),
            request_delay=float(delay) if delay is not None else None,
            request_timeout=float(timeout) if timeout is not None else None,
            max_threads=int(max_threads) if max_threads is not None else None,
            include_previews=(
                previews.lower() in ("1", "true", "yes", "on")
                if previews is not None else None
            ),
            default_container=get("DEFAULT_CONTAINER"),
            selectors_file=Path(selectors_file) if selectors_file else None,
        )
