"""
URL helper utilities.

This module provides functions for URL normalization, validation and
domain extraction used by platform preparation and record validation.
"""

import re
from typing import Optional
from urllib.parse import urlparse


def normalize_url(url: str) -> str:
    """
    Normalize URL by adding a scheme if missing.

    Examples:
        >>> normalize_url("openai.com")
        'https://openai.com'
        >>> normalize_url("http://openai.com")
        'http://openai.com'
        >>> normalize_url("//openai.com")
        'https://openai.com'
    """
    url = url.strip()

    if url.startswith("//"):
        return f"https:{url}"
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    return url


def is_valid_url(url: str) -> bool:
    """
    True when `url` (scheme optional) parses to a host with a dot in it.

    Examples:
        >>> is_valid_url("huggingface.co")
        True
        >>> is_valid_url("not a url")
        False
    """
    if not url or not url.strip():
        return False
    try:
        host = urlparse(normalize_url(url)).hostname or ""
    except ValueError:
        return False
    return "." in host and " " not in url.strip()


def extract_domain(url: str) -> Optional[str]:
    """
    Hostname of `url` without a leading "www.", or None if it does not parse.

    Examples:
        >>> extract_domain("https://www.anthropic.com/claude")
        'anthropic.com'
    """
    if not is_valid_url(url):
        return None
    host = urlparse(normalize_url(url)).hostname or ""
    return re.sub(r"^www\.", "", host.lower()) or None


_SPECIAL_CASES = {
    "Api": "API",
    "Ai": "AI",
    "Ml": "ML",
    "Nlp": "NLP",
    "Aws": "AWS",
    "Ibm": "IBM",
    "Hp": "HP",
    "Sap": "SAP",
}


def company_name_from_domain(domain: str) -> str:
    """
    Human-readable company name from the first label of a domain.

    Examples:
        >>> company_name_from_domain("stability-ai.com")
        'Stability AI'
        >>> company_name_from_domain("ibm.com")
        'IBM'
    """
    name = domain.lower().split(".")[0]
    name = re.sub(r"[-_]", " ", name)
    name = re.sub(r"\b\w", lambda m: m.group(0).upper(), name)
    for key, value in _SPECIAL_CASES.items():
        name = re.sub(rf"\b{key}\b", value, name)
    name = re.sub(r"\b(Inc|LLC|Ltd|Corp|Corporation|Company)\b", "", name)
    return re.sub(r"\s+", " ", name).strip()
