# app/utils/storage.py
from contextlib import contextmanager

from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import Session

from app.domain.errors import StorageError, TransientStorageError
from app.utils.logging import get_logger

logger = get_logger(__name__)


@contextmanager
def storage_guard(db: Session, operation: str, ambiguous: bool = False):
    """
    Translate SQLAlchemy failures into the core error kinds.

    The session is rolled back before raising. `ambiguous` marks writes whose
    outcome is unknown when they fail (commit of a decrement, order insert).
    """
    try:
        yield
    except (sa_exc.OperationalError, sa_exc.TimeoutError) as e:
        db.rollback()
        logger.warning(f"Transient storage failure during {operation}: {e}")
        raise TransientStorageError(f"{operation} failed: {e}", ambiguous=ambiguous) from e
    except sa_exc.SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Storage failure during {operation}: {e}")
        raise StorageError(f"{operation} failed") from e
