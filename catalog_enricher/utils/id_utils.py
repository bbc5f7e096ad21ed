"""Identifier generation for synthesized records and relation rows."""

import re
import time
import uuid
from typing import Optional


def _token() -> str:
    return uuid.uuid4().hex[:8]


def generate_id(prefix: str, parent_id: Optional[str] = None) -> str:
    """
    Fresh unique id.

    `prefix_<millis>_<random>` by default; `prefix_<parent_id>_<random>` when a
    parent id is given, so the parent can later be found by id containment.
    """
    middle = parent_id if parent_id else str(int(time.time() * 1000))
    return f"{prefix}_{middle}_{_token()}"


def slugify(text: str) -> str:
    """
    Lowercase, underscore-separated form of `text`.

    Examples:
        >>> slugify("Google Sheets")
        'google_sheets'
        >>> slugify("  Salesforce (CRM) ")
        'salesforce_crm'
    """
    slug = re.sub(r"[^a-z0-9]+", "_", text.lower())
    return slug.strip("_")
