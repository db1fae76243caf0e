import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from .....application.ports.unit_of_work import UnitOfWork
from .....exceptions import InternalError

logger = logging.getLogger(__name__)


class SqlUnitOfWork(UnitOfWork):
    def __init__(self, session: Session):
        self.session = session

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error committing transaction: {e}")
            self.session.rollback()
            raise InternalError("Failed to save changes") from e

    def rollback(self) -> None:
        self.session.rollback()
