"""Participant identifiers derived from display names.

Ids are name-based UUIDs (version 5) under a deployment-specific namespace.
Names are case-folded first, so "Jane Doe" and "jane doe" are the same
participant.
"""
from __future__ import annotations

import re
import uuid

# Same rule the participant page enforces before registering
_NAME_RE = re.compile(r"[A-Za-z\s.\-]+")


def normalize_name(name: str) -> str:
    return name.casefold()


def participant_id(name: str, namespace: uuid.UUID) -> str:
    """Deterministic id for *name*; no collision handling beyond UUIDv5 itself."""
    return str(uuid.uuid5(namespace, normalize_name(name)))


def validate_name(name: str) -> str | None:
    """Return an error message for an unacceptable display name, else None."""
    if not name or not name.strip():
        return "Please enter your full name to continue"
    if not _NAME_RE.fullmatch(name):
        return "Please enter only alphabetic characters in your name. Dots and dashes are accepted"
    return None
