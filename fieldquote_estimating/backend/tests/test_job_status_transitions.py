# backend/tests/test_job_status_transitions.py
from __future__ import annotations

import pytest

from fieldquote.domain.errors import ValidationError
from fieldquote.domain.job_status import ensure_status_transition, normalize_status, status_stats


def test_forward_moves_allowed():
    assert ensure_status_transition("DRAFT", "sent") == "SENT"
    assert ensure_status_transition("SENT", "in progress") == "IN_PROGRESS"
    # skipping ahead and staying put are fine
    assert ensure_status_transition("DRAFT", "DONE") == "DONE"
    assert ensure_status_transition("APPROVED", "APPROVED") == "APPROVED"


def test_backward_move_rejected_in_strict_mode():
    with pytest.raises(ValidationError):
        ensure_status_transition("SENT", "DRAFT")


def test_non_strict_allows_anything_known():
    assert ensure_status_transition("DONE", "DRAFT", strict=False) == "DRAFT"
    with pytest.raises(ValidationError):
        ensure_status_transition("DONE", "ARCHIVED", strict=False)


def test_unknown_status():
    with pytest.raises(ValidationError):
        normalize_status("cancelled")


def test_status_stats():
    s = status_stats(["DRAFT", "draft", "SENT", "DONE", None])
    assert s == {"total": 5, "drafts": 2, "sent": 1, "approved": 0, "in_progress": 0, "done": 1}
