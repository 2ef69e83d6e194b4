import logging
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import ServiceResult

logger = logging.getLogger(__name__)


class BaseService:
    """Owns a database session and the commit/rollback around each write."""

    def __init__(self, db: Session):
        self.db = db

    def _commit(self) -> None:
        self.db.commit()

    def _run(self, action: str, operation: Callable[[], ServiceResult]) -> ServiceResult:
        """Run ``operation``, turning persistence failures into a Database result."""
        try:
            return operation()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Database error while trying to %s", action)
            return ServiceResult.database_error()
        except Exception:
            self.db.rollback()
            logger.exception("Unexpected error while trying to %s", action)
            return ServiceResult.unexpected_error()
