# backend/fieldquote/domain/audit.py
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..models import AuditEvent

log = logging.getLogger(__name__)


def _dumps(v: Optional[dict[str, Any]]) -> Optional[str]:
    if v is None:
        return None
    return json.dumps(v, sort_keys=True, default=str)


def audit_write(
    db: Session,
    *,
    company_id: int,
    actor_user_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Any,
    job_id: Optional[int] = None,
    before: Optional[dict[str, Any]] = None,
    after: Optional[dict[str, Any]] = None,
) -> AuditEvent:
    """
    Add an audit row to the current transaction.

    Does NOT commit: routers bundle the change and its audit row and commit once.
    """
    row = AuditEvent(
        company_id=int(company_id),
        actor_user_id=int(actor_user_id) if actor_user_id is not None else None,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        job_id=int(job_id) if job_id is not None else None,
        before_json=_dumps(before),
        after_json=_dumps(after),
        created_at=datetime.utcnow(),
    )
    db.add(row)
    log.info(
        "audit %s %s:%s",
        action,
        entity_type,
        entity_id,
        extra={"company_id": company_id, "user_id": actor_user_id, "action": action},
    )
    return row
