"""Derive project names and artifact filenames from meeting subjects.

Subjects follow one of three prefix conventions, checked in order:

    [Project] Rest of title
    Project - Rest of title
    Project: Rest of title

Anything else belongs to the ``general`` project and keeps its whole subject
as the title.
"""
from __future__ import annotations

import re
from datetime import datetime

from transcript_intake.utils.time_utils import parse_graph_datetime

FALLBACK_PROJECT = "general"
TRANSCRIPT_EXTENSION = ".vtt"

_BRACKET_RE = re.compile(r"^\s*\[([^\]]*)\]\s*(.*)$", re.DOTALL)
_WHITESPACE_RE = re.compile(r"\s+")
_INVALID_RE = re.compile(r"[^a-z0-9-]")
_HYPHENS_RE = re.compile(r"-{2,}")


def slugify(text: str | None) -> str:
    if not text:
        return ""
    slug = _WHITESPACE_RE.sub("-", text.strip().lower())
    slug = _INVALID_RE.sub("", slug)
    slug = _HYPHENS_RE.sub("-", slug)
    return slug.strip("-")


def split_subject(subject: str | None) -> tuple[str | None, str]:
    """Return ``(project_token, title)``; the token is None when no prefix matches."""
    if not subject or not subject.strip():
        return None, ""

    bracket = _BRACKET_RE.match(subject)
    if bracket:
        return bracket.group(1), bracket.group(2)

    if " - " in subject:
        project, _sep, title = subject.partition(" - ")
        return project, title

    if ":" in subject:
        project, _sep, title = subject.partition(":")
        return project, title

    return None, subject


def resolve_project_name(subject: str | None) -> str:
    project, _title = split_subject(subject)
    return slugify(project) or FALLBACK_PROJECT


def resolve_filename(subject: str | None, start_date_time: str | datetime) -> str:
    """``{YYYY-MM-DD}-{title-slug}.vtt``, dated by the UTC start time.

    Raises ValueError when the start time cannot be parsed.
    """
    date_part = parse_graph_datetime(start_date_time).date().isoformat()
    _project, title = split_subject(subject)
    title_slug = slugify(title) or slugify(subject) or "meeting"
    return f"{date_part}-{title_slug}{TRANSCRIPT_EXTENSION}"


def storage_key(project_name: str, filename: str, prefix: str = "") -> str:
    return f"{prefix}{project_name}/{filename}"
