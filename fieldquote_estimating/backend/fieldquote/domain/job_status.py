# backend/fieldquote/domain/job_status.py
from __future__ import annotations

from typing import Any, Iterable, Optional

from .errors import ValidationError

JOB_STATUSES: tuple[str, ...] = ("DRAFT", "SENT", "APPROVED", "IN_PROGRESS", "DONE")

# Job list header counters, keyed by the names the client reads.
_STAT_KEYS = {
    "DRAFT": "drafts",
    "SENT": "sent",
    "APPROVED": "approved",
    "IN_PROGRESS": "in_progress",
    "DONE": "done",
}


def normalize_status(status: Optional[str]) -> str:
    s = (status or "").strip().upper().replace("-", "_").replace(" ", "_")
    if s not in JOB_STATUSES:
        raise ValidationError(f"unknown job status {status!r}", field="status")
    return s


def _rank(status: str) -> int:
    return JOB_STATUSES.index(status)


def ensure_status_transition(current: Optional[str], requested: str, *, strict: bool = True) -> str:
    """
    Validate a status write and return the normalized target.

    strict: forward-only (skipping ahead is fine, staying put is fine).
    non-strict: any known status may be written directly.
    """
    target = normalize_status(requested)
    if current is None or not strict:
        return target

    cur = normalize_status(current)
    if _rank(target) < _rank(cur):
        raise ValidationError(f"job status cannot move backward from {cur} to {target}", field="status")
    return target


def status_stats(statuses: Iterable[Any]) -> dict[str, int]:
    out = {"total": 0, **{k: 0 for k in _STAT_KEYS.values()}}
    for s in statuses:
        out["total"] += 1
        key = _STAT_KEYS.get(str(s or "").upper())
        if key:
            out[key] += 1
    return out
