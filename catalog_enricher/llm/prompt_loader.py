"""
Prompt loader with versioning and content hashing.

Prompts use a frontmatter format:
```
# PROMPT: prompt_name
# VERSION: 1.0.0
# LAST_UPDATED: 2025-01-20
# DESCRIPTION: Brief description
# ---PROMPT_START---
[actual prompt content]
```

The hash is computed from content BELOW the separator only, so a content
edit without a version bump can be detected within one process.

Usage:
    from catalog_enricher.llm.prompt_loader import load_prompt

    prompt = load_prompt("enrichment_system")
    print(prompt.version)       # "1.0.0"
    print(prompt.content_hash)  # "a1b2c3d4e5f6..."
"""

import hashlib
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Cache of known hashes per version: {prompt_name: {version: content_hash}}
_version_hash_cache: Dict[str, Dict[str, str]] = {}


def _version_check_mode() -> str:
    """PROMPT_VERSION_CHECK: "warn" (default), "strict" (error) or "off"."""
    return os.environ.get("PROMPT_VERSION_CHECK", "warn").lower()


@dataclass
class PromptInfo:
    """Loaded prompt with metadata."""

    name: str
    version: str
    content: str
    content_hash: str
    last_updated: Optional[str] = None
    description: Optional[str] = None
    file_path: Optional[str] = None
    hash_mismatch: bool = False  # True if content changed but version didn't


def _compute_hash(content: str) -> str:
    """SHA256 of content, truncated to 16 chars."""
    return hashlib.sha256(content.strip().encode()).hexdigest()[:16]


def _parse_frontmatter(text: str) -> Tuple[Dict[str, str], str]:
    """
    Split frontmatter from content.

    Returns:
        (metadata_dict, content_string)
    """
    match = re.search(r"^#\s*---PROMPT_START---\s*$", text, re.MULTILINE)
    if not match:
        return {}, text.strip()

    metadata = {}
    for line in text[: match.start()].strip().split("\n"):
        line_match = re.match(r"^#\s*(\w+):\s*(.+)$", line.strip())
        if line_match:
            metadata[line_match.group(1).lower()] = line_match.group(2).strip()

    return metadata, text[match.end() :].strip()


def _get_prompts_dir() -> Path:
    return Path(__file__).parent / "prompts"


def load_prompt(
    name: str,
    prompts_dir: Optional[Path] = None,
    check_version: bool = True,
) -> PromptInfo:
    """
    Load a prompt file with version and hash tracking.

    Args:
        name: Prompt name (without .txt extension)
        prompts_dir: Optional custom prompts directory
        check_version: Whether to validate version/hash consistency

    Raises:
        FileNotFoundError: If the prompt file doesn't exist
        ValueError: In strict mode, when content changed under the same version
    """
    prompts_dir = prompts_dir or _get_prompts_dir()
    file_path = prompts_dir / f"{name}.txt"
    if not file_path.exists():
        raise FileNotFoundError(f"Prompt file not found: {file_path}")

    metadata, content = _parse_frontmatter(file_path.read_text(encoding="utf-8"))
    version = metadata.get("version", "0.0.0")
    content_hash = _compute_hash(content)

    hash_mismatch = False
    mode = _version_check_mode()
    if check_version and mode != "off":
        cached = _version_hash_cache.setdefault(name, {})
        if version in cached and cached[version] != content_hash:
            hash_mismatch = True
            msg = (
                f"Prompt '{name}' content changed but version still {version}. "
                f"Expected hash {cached[version][:8]}..., got {content_hash[:8]}... "
                f"Consider bumping the version."
            )
            if mode == "strict":
                raise ValueError(msg)
            logger.warning(msg)
        cached[version] = content_hash

    return PromptInfo(
        name=name,
        version=version,
        content=content,
        content_hash=content_hash,
        last_updated=metadata.get("last_updated"),
        description=metadata.get("description"),
        file_path=str(file_path),
        hash_mismatch=hash_mismatch,
    )


def list_prompts(prompts_dir: Optional[Path] = None) -> List[PromptInfo]:
    """List all available prompts with their metadata."""
    prompts_dir = prompts_dir or _get_prompts_dir()
    return [load_prompt(path.stem, prompts_dir, check_version=False) for path in sorted(prompts_dir.glob("*.txt"))]
