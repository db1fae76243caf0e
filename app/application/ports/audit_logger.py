from dataclasses import dataclass
from typing import Optional, Dict, Any, Protocol


@dataclass
class RequestContext:
    actor_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditLogger(Protocol):
    def log(self, action: str, entity_type: str, entity_id: Optional[str], context: RequestContext, before: Optional[Dict[str, Any]] = None, after: Optional[Dict[str, Any]] = None) -> None:
        ...
