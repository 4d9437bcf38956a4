"""
File collector: gathers a bounded sample of source text for review.
"""

import logging
import re
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

MAX_FILE_CHARS = 10_000
TRUNCATION_MARKER = "\n// ...truncated..."

# Control characters except tab (\x09) and newline (\x0A)
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B-\x1F\x7F]")

SKIPPED_DIRS = {".git", "node_modules"}


def sanitize_code(text: str) -> str:
    """Strip non-printable control characters, keeping tabs and newlines."""
    return CONTROL_CHARS.sub("", text)


def truncate(text: str, max_chars: int = MAX_FILE_CHARS) -> str:
    """Cap text at max_chars, appending a marker when it was cut."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


def match_files(project_path: Path, patterns: Iterable[str]) -> list[Path]:
    """
    Resolve glob patterns against project_path.

    Results keep pattern order, are sorted within a pattern and appear
    once even when several patterns match them. Files outside the
    project (through symlinks) and files under .git or node_modules
    are ignored.
    """
    root = project_path.resolve()
    seen: set[Path] = set()
    matched: list[Path] = []

    for pattern in patterns:
        pattern = pattern.strip().lstrip("/")
        if not pattern:
            continue
        try:
            candidates = sorted(root.glob(pattern))
        except (ValueError, OSError) as e:
            logger.warning(f"Skipping file pattern {pattern!r}: {e}")
            continue

        for candidate in candidates:
            if not candidate.is_file():
                continue
            resolved = candidate.resolve()
            if not resolved.is_relative_to(root):
                continue
            relative = resolved.relative_to(root)
            if SKIPPED_DIRS.intersection(relative.parts):
                continue
            if resolved in seen:
                continue
            seen.add(resolved)
            matched.append(resolved)

    return matched


def collect_sources(
    project_path: Path,
    patterns: Iterable[str],
    max_chars: int = MAX_FILE_CHARS,
) -> str:
    """
    Concatenate matched files into one text block for the reviewer.

    Each file is sanitized, truncated to max_chars and preceded by a
    "// <relative path>" header. Invalid UTF-8 bytes are replaced with
    U+FFFD; only files that cannot be read at all are skipped.
    """
    root = project_path.resolve()
    chunks = []

    for path in match_files(root, patterns):
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.debug(f"Skipping unreadable file {path}: {e}")
            continue

        content = truncate(sanitize_code(content), max_chars)
        relative = path.relative_to(root).as_posix()
        chunks.append(f"// {relative}\n{content}\n\n")

    logger.info(f"Collected {len(chunks)} files from {project_path}")
    return "".join(chunks)
