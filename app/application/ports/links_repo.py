from dataclasses import dataclass
from typing import Optional
from datetime import datetime


@dataclass
class LinkDto:
    id: str
    token: str
    doctor_id: Optional[str]
    is_active: bool
    expires_at: datetime
    max_uses: int
    current_uses: int
    created_at: datetime


class LinksRepository:
    def add(self, token: str, doctor_id: Optional[str], max_uses: int, expires_at: datetime, created_by: Optional[str]) -> LinkDto:
        ...

    def get_by_token(self, token: str) -> Optional[LinkDto]:
        ...

    def get_by_id(self, link_id: str) -> Optional[LinkDto]:
        ...

    def increment_uses(self, link_id: str) -> bool:
        """Add one use if the link is active and below max_uses. Returns False when no row qualified."""
        ...

    def deactivate(self, link_id: str) -> None:
        ...
