"""
Record store over a SQLAlchemy session.

The engine only needs four things from storage: ``create``, ``get``,
``query`` and ``conditional_update``. The last one is a compare-and-swap on a
single row: the patch is applied only if every predicate column still holds
its expected value, decided by the affected row count of one ``UPDATE``.
"""
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from .exceptions import StoreUnavailable

logger = logging.getLogger(__name__)


class PredicateFailed(Exception):
    """The conditional write found the record in a different state."""


class RecordConflict(Exception):
    """An insert violated a uniqueness constraint."""


class RecordStore:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def guard(self) -> Iterator[None]:
        """Roll back on failure and map driver errors to store errors."""
        try:
            yield
        except IntegrityError as exc:
            self.db.rollback()
            raise RecordConflict(str(exc.orig)) from exc
        except DBAPIError as exc:
            self.db.rollback()
            logger.error(f"Record store failure: {exc.orig}")
            raise StoreUnavailable() from exc
        except BaseException:
            self.db.rollback()
            raise

    def get(self, model, record_id: Any, *, refresh: bool = False):
        with self.guard():
            return self.db.get(model, record_id, populate_existing=refresh)

    def create(self, record, *, commit: bool = True):
        with self.guard():
            self.db.add(record)
            if commit:
                self.db.commit()
                self.db.refresh(record)
            else:
                self.db.flush()
        return record

    def query(
        self,
        model,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Sequence = (),
        limit: Optional[int] = None,
    ) -> List[Any]:
        stmt = select(model).where(*self._criteria(model, filters or {}))
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self.guard():
            return list(self.db.scalars(stmt).all())

    def conditional_update(
        self,
        model,
        record_id: Any,
        predicate: Dict[str, Any],
        patch: Dict[str, Any],
        *,
        commit: bool = True,
    ):
        """Apply ``patch`` to one record only if ``predicate`` still holds.

        Raises ``PredicateFailed`` without side effects when no row matched.
        Returns the freshly loaded record otherwise.
        """
        stmt = (
            update(model)
            .where(model.id == record_id, *self._criteria(model, predicate))
            .values(**patch)
            .execution_options(synchronize_session=False)
        )
        with self.guard():
            result = self.db.execute(stmt)
            if result.rowcount != 1:
                self.db.rollback()
                raise PredicateFailed(f"{model.__tablename__}/{record_id}")
            if commit:
                self.db.commit()
            return self.db.get(model, record_id, populate_existing=True)

    def commit(self) -> None:
        with self.guard():
            self.db.commit()

    @staticmethod
    def _criteria(model, values: Dict[str, Any]) -> list:
        criteria = []
        for column, expected in values.items():
            attr = getattr(model, column)
            if expected is None:
                criteria.append(attr.is_(None))
            elif isinstance(expected, (list, tuple, set, frozenset)):
                criteria.append(attr.in_(list(expected)))
            else:
                criteria.append(attr == expected)
        return criteria
