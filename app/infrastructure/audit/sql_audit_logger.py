import json
import logging
from typing import Optional, Dict, Any
from sqlmodel import Session

from ...application.ports.audit_logger import AuditLogger, RequestContext
from ...models import AuditLog


class SqlAuditLogger(AuditLogger):
    def __init__(self, session: Session) -> None:
        self.session = session
        self._logger = logging.getLogger(__name__)

    def log(self, action: str, entity_type: str, entity_id: Optional[str], context: RequestContext, before: Optional[Dict[str, Any]] = None, after: Optional[Dict[str, Any]] = None) -> None:
        changes = json.dumps({"before": before, "after": after}, default=str)
        entry = AuditLog(
            user_id=context.actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            changes=changes,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )
        try:
            self.session.add(entry)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self._logger.info(f"AUDIT: {json.dumps({'action': action, 'entity_type': entity_type, 'entity_id': entity_id, 'user_id': context.actor_id, 'ip_address': context.ip_address})}")
