from datetime import datetime
from typing import Optional
from sqlalchemy import update
from sqlmodel import Session, select

from .....models import AppointmentLink
from .....utils import as_utc, utcnow
from .....application.ports.links_repo import LinksRepository, LinkDto


class SqlLinksRepository(LinksRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, link: AppointmentLink) -> LinkDto:
        return LinkDto(
            id=link.id,
            token=link.token,
            doctor_id=link.doctor_id,
            is_active=bool(link.is_active),
            expires_at=as_utc(link.expires_at),
            max_uses=link.max_uses,
            current_uses=link.current_uses,
            created_at=as_utc(link.created_at),
        )

    def add(self, token: str, doctor_id: Optional[str], max_uses: int, expires_at: datetime, created_by: Optional[str]) -> LinkDto:
        link = AppointmentLink(
            token=token,
            doctor_id=doctor_id,
            max_uses=max_uses,
            expires_at=expires_at,
            created_by=created_by,
        )
        self.session.add(link)
        self.session.flush()
        return self._to_dto(link)

    def get_by_token(self, token: str) -> Optional[LinkDto]:
        link = self.session.exec(select(AppointmentLink).where(AppointmentLink.token == token)).first()
        if link:
            # Always read the committed counters, not a copy cached earlier in the session
            self.session.refresh(link)
        return self._to_dto(link) if link else None

    def get_by_id(self, link_id: str) -> Optional[LinkDto]:
        link = self.session.exec(select(AppointmentLink).where(AppointmentLink.id == link_id)).first()
        return self._to_dto(link) if link else None

    def increment_uses(self, link_id: str) -> bool:
        # Conditional UPDATE so the counter can never pass max_uses, even across workers
        result = self.session.connection().execute(
            update(AppointmentLink)
            .where(AppointmentLink.id == link_id)
            .where(AppointmentLink.is_active == True)  # noqa: E712
            .where(AppointmentLink.current_uses < AppointmentLink.max_uses)
            .values(current_uses=AppointmentLink.current_uses + 1, updated_at=utcnow())
        )
        return result.rowcount == 1

    def deactivate(self, link_id: str) -> None:
        link = self.session.exec(select(AppointmentLink).where(AppointmentLink.id == link_id)).first()
        if not link:
            return
        link.is_active = False
        link.updated_at = utcnow()
        self.session.add(link)
        self.session.flush()
