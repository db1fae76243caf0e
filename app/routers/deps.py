import logging
from functools import lru_cache
from typing import Callable

from fastapi import BackgroundTasks, Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session, select

from ..application.ports.audit_logger import RequestContext
from ..application.ports.lock_service import KeyedLock
from ..application.scheduling.slots import SlotGenerator
from ..application.services.appointments_service import AppointmentsService
from ..application.services.links_service import SchedulingLinksService
from ..config import settings
from ..database import get_session
from ..infrastructure.audit.sql_audit_logger import SqlAuditLogger
from ..infrastructure.locks.memory_lock import InMemoryKeyedLock
from ..infrastructure.locks.redis_lock import RedisKeyedLock
from ..infrastructure.notifications.clinic_notifier import ClinicNotifier
from ..infrastructure.persistence.sqlalchemy.repositories.appointments_repository_sql import SqlAppointmentsRepository
from ..infrastructure.persistence.sqlalchemy.repositories.links_repository_sql import SqlLinksRepository
from ..infrastructure.persistence.sqlalchemy.repositories.patients_repository_sql import SqlPatientRepository
from ..infrastructure.persistence.sqlalchemy.repositories.unit_of_work_sql import SqlUnitOfWork
from ..models import User
from ..utils import decode_jwt_token

logger = logging.getLogger(__name__)

oauth2_scheme = HTTPBearer()


def get_current_staff(
    credentials: HTTPAuthorizationCredentials = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> User:
    payload = decode_jwt_token(credentials.credentials)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token: missing user ID")
    user = session.exec(select(User).where(User.id == str(user_id))).first()
    if not user or not user.is_active:
        logger.warning(f"Rejected token for unknown or inactive staff user {user_id}")
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user


def require_roles(*roles: str) -> Callable[..., User]:
    def dependency(staff: User = Depends(get_current_staff)) -> User:
        if staff.role not in roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return staff
    return dependency


def request_context(request: Request, actor_id: str = None) -> RequestContext:
    return RequestContext(
        actor_id=actor_id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


@lru_cache()
def get_lock_service() -> KeyedLock:
    if settings.REDIS_URL:
        logger.info("Using Redis for scheduling locks")
        return RedisKeyedLock(settings.REDIS_URL, timeout=settings.LOCK_TIMEOUT_SECONDS)
    return InMemoryKeyedLock(timeout=settings.LOCK_TIMEOUT_SECONDS)


def get_appointments_service(
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    locks: KeyedLock = Depends(get_lock_service),
) -> AppointmentsService:
    return AppointmentsService(
        repo=SqlAppointmentsRepository(session),
        patients=SqlPatientRepository(session),
        uow=SqlUnitOfWork(session),
        locks=locks,
        notifier=ClinicNotifier(session),
        audit=SqlAuditLogger(session),
        slot_generator=SlotGenerator(settings.CLINIC_OPENING_HOUR, settings.CLINIC_CLOSING_HOUR, settings.SLOT_MINUTES),
        public_appointment_minutes=settings.PUBLIC_APPOINTMENT_MINUTES,
        clinic_name=settings.CLINIC_NAME,
        dispatch=background_tasks.add_task,
    )


def get_links_service(
    session: Session = Depends(get_session),
    locks: KeyedLock = Depends(get_lock_service),
    appointments: AppointmentsService = Depends(get_appointments_service),
) -> SchedulingLinksService:
    return SchedulingLinksService(
        links=SqlLinksRepository(session),
        appointments=appointments,
        uow=SqlUnitOfWork(session),
        locks=locks,
        audit=SqlAuditLogger(session),
        frontend_url=settings.FRONTEND_URL,
        default_max_uses=settings.LINK_DEFAULT_MAX_USES,
        default_expires_days=settings.LINK_DEFAULT_EXPIRES_DAYS,
    )
