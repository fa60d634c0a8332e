"""
Utility functions for the BGG Rules Extractor.

This module provides helpers for URL canonicalization and for turning a
game title into a safe, deterministic artifact name.
"""

import logging
import re
import unicodedata
from typing import Optional
from urllib.parse import urldefrag, urljoin

logger = logging.getLogger(__name__)

# Artifact naming policy
MAX_NAME_LENGTH = 100
ARTIFACT_EXTENSION = ".txt"
DEFAULT_ARTIFACT_BASE = "BGG_Rules_Export"


def canonicalize_url(href: str, base_url: str = "") -> str:
    """
    Resolve ``href`` against ``base_url`` and strip the fragment.

    Two links that only differ by ``#anchor`` identify the same thread, so
    the fragment is dropped before the URL is used as a set key.

    Example:
        canonicalize_url("/thread/42/rules#post-7", "https://boardgamegeek.com/x")
        # Returns: "https://boardgamegeek.com/thread/42/rules"
    """
    absolute = urljoin(base_url, href.strip()) if base_url else href.strip()
    url, _fragment = urldefrag(absolute)
    return url


def resolve_link(href: Optional[str], base_url: str = "") -> Optional[str]:
    """
    Canonicalize a scraped href, or return None when it is empty or malformed.

    ``urljoin`` raises ValueError on hrefs such as ``http://[broken/x``; a
    link like that is treated as absent rather than as a page error.
    """
    if not href or not href.strip():
        return None
    try:
        return canonicalize_url(href, base_url)
    except ValueError as e:
        logger.debug("Ignoring malformed link %r: %s", href, e)
        return None


def artifact_name(
    title: str,
    max_length: int = MAX_NAME_LENGTH,
    extension: str = ARTIFACT_EXTENSION,
    default: str = DEFAULT_ARTIFACT_BASE,
) -> str:
    """
    Generate the remote artifact name for a game title.

    The same title always yields the same name, which is what makes the
    upload an upsert keyed on (container, name).

    Args:
        title: Game title, e.g. "Terraforming Mars: Ares Expedition!"
        max_length: Maximum length of the base name (before the extension)
        extension: Extension appended to the base name
        default: Base name used when nothing survives normalization

    Returns:
        A filesystem-safe name, e.g. "TerraformingMarsAresExpedition.txt"

    Implementation details:
        1. Decompose accented characters (NFKD) and drop combining marks
        2. Keep only word characters, whitespace, dots and hyphens
        3. Remove all whitespace
        4. Remove path-unsafe characters: \\ / : * ? " < > |
        5. Truncate to max_length and append the extension
    """
    # -------------------------------------------------------
    # STEP 1: Strip diacritics ("Café" -> "Cafe")
    # -------------------------------------------------------
    decomposed = unicodedata.normalize("NFKD", title or "")
    clean = "".join(c for c in decomposed if not unicodedata.combining(c))

    # -------------------------------------------------------
    # STEP 2: Drop punctuation and whitespace
    # -------------------------------------------------------
    clean = re.sub(r"[^\w\s.\-]", "", clean)
    clean = re.sub(r"\s+", "", clean)
    clean = re.sub(r'[\\/:*?"<>|]', "", clean)

    # Leading dots would produce hidden files
    clean = clean.lstrip(".")

    # -------------------------------------------------------
    # STEP 3: Cap the length
    # -------------------------------------------------------
    if len(clean) > max_length:
        clean = clean[:max_length]

    if not clean:
        clean = default

    return f"{clean}{extension}"
