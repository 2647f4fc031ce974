"""Word storage backed by SQLAlchemy

The unique constraint on (user_id, word_key) is what actually keeps words
unique. This module only reports when the database refused an insert because
of it, so callers can tell that case apart from any other storage error.
"""
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Set

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.word import Word

logger = logging.getLogger(__name__)

# SQLSTATE for unique_violation (PostgreSQL)
UNIQUE_VIOLATION_SQLSTATE = "23505"

SORT_ORDERS = {
    "date-desc": (Word.added_at.desc(), Word.id.desc()),
    "date-asc": (Word.added_at.asc(), Word.id.asc()),
    "alpha-asc": (Word.word_key.asc(),),
    "alpha-desc": (Word.word_key.desc(),),
}


class RepositoryError(Exception):
    """Storage failed for a reason the caller should not interpret"""


class UniquenessViolation(RepositoryError):
    """An insert was rejected by the unique constraint on word keys"""

    def __init__(self, keys: Iterable[str]):
        self.keys = frozenset(keys)
        super().__init__(f"Unique constraint rejected batch containing {len(self.keys)} keys")


def is_unique_violation(exc: IntegrityError) -> bool:
    """Check whether an IntegrityError came from a unique constraint"""
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        return code == UNIQUE_VIOLATION_SQLSTATE
    # SQLite does not expose an error code through the DB-API
    return "UNIQUE constraint failed" in str(orig)


class WordRepository:
    """Lookup and batch insert of words for a database session"""

    def __init__(self, db: Session):
        self.db = db

    def find_existing(self, owner_id: int, keys: Iterable[str]) -> Set[str]:
        """Return which of `keys` the owner already has stored"""
        keys = set(keys)
        if not keys:
            return set()

        try:
            rows = self.db.execute(
                select(Word.word_key).where(
                    Word.user_id == owner_id,
                    Word.word_key.in_(keys)
                )
            ).scalars().all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise RepositoryError(f"Word lookup failed: {e}") from e

        return set(rows)

    def insert_batch(self, words: Sequence[Word]) -> int:
        """Insert words in order inside one transaction

        Either every word is committed or none is: the first failing row
        aborts the flush and the whole transaction is rolled back.
        """
        try:
            self.db.add_all(words)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if is_unique_violation(e):
                raise UniquenessViolation(w.word_key for w in words) from e
            raise RepositoryError(f"Word insert failed: {e}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise RepositoryError(f"Word insert failed: {e}") from e

        return len(words)

    def list_words(
        self,
        owner_id: int,
        sort: str = "date-desc",
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        search: Optional[str] = None,
        limit: int = 2000
    ) -> List[Word]:
        """List an owner's words with optional date range and key search

        `date_to` is inclusive: words added any time on that day match.
        """
        if sort not in SORT_ORDERS:
            raise ValueError(f"Unknown sort order: {sort}")

        query = self.db.query(Word).filter(Word.user_id == owner_id)

        if date_from is not None:
            query = query.filter(Word.added_at >= datetime.combine(date_from, time.min, tzinfo=timezone.utc))
        if date_to is not None:
            query = query.filter(Word.added_at < datetime.combine(date_to + timedelta(days=1), time.min, tzinfo=timezone.utc))
        if search:
            query = query.filter(Word.word_key.contains(search.lower(), autoescape=True))

        try:
            return query.order_by(*SORT_ORDERS[sort]).limit(limit).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise RepositoryError(f"Word listing failed: {e}") from e
