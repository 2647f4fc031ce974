"""Word batch service - validate and submit batches of words

A batch must normalize to exactly WORDS_PER_BATCH words. Validate and submit
both re-derive conflicts from the current database state; nothing is carried
over between the two calls. Submit relies on the database unique constraint
for concurrent writers and reports a lost race with the same conflict shape
as a conflict caught up front.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from app.core.config import settings
from app.core.logging import words_logger
from app.core.metrics import word_batches_counter, word_conflicts_counter, words_inserted_counter
from app.db.word_repository import RepositoryError, UniquenessViolation, WordRepository
from app.models.word import Word

logger = logging.getLogger(__name__)


class InvalidBatchError(ValueError):
    """Batch is malformed and was rejected before any storage access"""


class BatchSizeError(InvalidBatchError):
    """Batch did not normalize to the required number of words"""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Exactly {expected} words required. You provided {actual}.")


class WordTooLongError(InvalidBatchError):
    """One or more words exceed the stored column size"""

    def __init__(self, max_length: int, words: Sequence[str]):
        self.max_length = max_length
        self.words = list(words)
        super().__init__(f"Words must be at most {max_length} characters long")


class WordConflictError(Exception):
    """Batch contains words that are duplicated or already stored"""

    def __init__(self, conflicts: "ConflictReport", race: bool = False):
        self.conflicts = conflicts
        self.race = race
        already_stored = race or bool(conflicts.stored)
        super().__init__("One or more words already exist" if already_stored else "Duplicate words in submitted batch")


class WordStorageError(Exception):
    """Storage failed while checking or inserting a batch"""


@dataclass(frozen=True)
class ConflictReport:
    """Lower-cased keys that block a batch from being stored"""
    stored: FrozenSet[str] = field(default_factory=frozenset)
    in_batch: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def ok(self) -> bool:
        return not self.stored and not self.in_batch

    def to_dict(self) -> Dict[str, List[str]]:
        return {"stored": sorted(self.stored), "inBatch": sorted(self.in_batch)}


# ============================================================================
# NORMALIZATION
# ============================================================================

def normalize_batch(raw_items: Optional[Iterable[Any]]) -> Tuple[List[str], List[str]]:
    """Turn raw submitted values into trimmed words and their comparison keys

    Empty values are dropped; the order of the remaining words is kept and
    keys[i] is always cleaned[i].lower().
    """
    cleaned = []
    for item in raw_items or []:
        text = "" if item is None else str(item).strip()
        if text:
            cleaned.append(text)

    keys = [text.lower() for text in cleaned]
    return cleaned, keys


def _normalize_and_check_batch(raw_items: Optional[Iterable[Any]]) -> Tuple[List[str], List[str]]:
    cleaned, keys = normalize_batch(raw_items)
    expected = settings.WORDS_PER_BATCH
    if len(cleaned) != expected:
        raise BatchSizeError(expected, len(cleaned))

    # Lower-casing can lengthen a string, so the key is checked too
    too_long = [
        text for text, key in zip(cleaned, keys)
        if max(len(text), len(key)) > settings.MAX_WORD_LENGTH
    ]
    if too_long:
        raise WordTooLongError(settings.MAX_WORD_LENGTH, too_long)
    return cleaned, keys


# ============================================================================
# CONFLICT DETECTION
# ============================================================================

def find_in_batch_duplicates(keys: Sequence[str]) -> FrozenSet[str]:
    """Keys that appear more than once in the batch"""
    return frozenset(key for key, count in Counter(keys).items() if count > 1)


def detect_conflicts(keys: Sequence[str], owner_id: int, repository: WordRepository) -> ConflictReport:
    """Classify batch keys as duplicated in the batch and/or already stored

    Both checks always run, so a key can show up in both sets.
    """
    in_batch = find_in_batch_duplicates(keys)

    try:
        stored = frozenset(repository.find_existing(owner_id, set(keys)))
    except RepositoryError as e:
        logger.error(f"Word lookup failed for user {owner_id}: {e}", exc_info=True)
        raise WordStorageError("Word lookup failed") from e

    return ConflictReport(stored=stored, in_batch=in_batch)


def _record_conflicts(report: ConflictReport) -> None:
    if report.stored:
        word_conflicts_counter.labels(kind="stored").inc(len(report.stored))
    if report.in_batch:
        word_conflicts_counter.labels(kind="in_batch").inc(len(report.in_batch))


# ============================================================================
# VALIDATE / SUBMIT
# ============================================================================

def validate_batch(raw_items: Optional[Iterable[Any]], owner_id: int, repository: WordRepository) -> ConflictReport:
    """Report conflicts for a batch without storing anything

    Raises:
        BatchSizeError: If the batch does not have exactly WORDS_PER_BATCH words
        WordTooLongError: If a word is longer than MAX_WORD_LENGTH
        WordStorageError: If the lookup fails
    """
    try:
        _, keys = _normalize_and_check_batch(raw_items)
        report = detect_conflicts(keys, owner_id, repository)
    except InvalidBatchError:
        word_batches_counter.labels(action="validate", outcome="bad_request").inc()
        raise
    except WordStorageError:
        word_batches_counter.labels(action="validate", outcome="storage_failure").inc()
        raise

    if report.ok:
        word_batches_counter.labels(action="validate", outcome="ok").inc()
    else:
        word_batches_counter.labels(action="validate", outcome="conflict").inc()
        _record_conflicts(report)
        words_logger.info(
            f"Validation found conflicts for user {owner_id} - "
            f"stored: {sorted(report.stored)}, in batch: {sorted(report.in_batch)}"
        )

    return report


def submit_batch(raw_items: Optional[Iterable[Any]], owner_id: int, repository: WordRepository) -> int:
    """Store a batch of words if none of them conflict

    Conflicts are re-checked here even if the caller validated first. If a
    concurrent submit stores one of the keys between the check and the
    insert, the database rejects the batch and the keys that now exist are
    reported as stored conflicts.

    Returns:
        int: Number of words inserted

    Raises:
        BatchSizeError: If the batch does not have exactly WORDS_PER_BATCH words
        WordTooLongError: If a word is longer than MAX_WORD_LENGTH
        WordConflictError: If any key is duplicated in the batch or already stored
        WordStorageError: If storage fails for any other reason
    """
    try:
        cleaned, keys = _normalize_and_check_batch(raw_items)
    except InvalidBatchError:
        word_batches_counter.labels(action="submit", outcome="bad_request").inc()
        raise

    try:
        report = detect_conflicts(keys, owner_id, repository)
    except WordStorageError:
        word_batches_counter.labels(action="submit", outcome="storage_failure").inc()
        raise

    if not report.ok:
        word_batches_counter.labels(action="submit", outcome="conflict").inc()
        _record_conflicts(report)
        words_logger.info(
            f"Submit rejected for user {owner_id} - "
            f"stored: {sorted(report.stored)}, in batch: {sorted(report.in_batch)}"
        )
        raise WordConflictError(report)

    added_at = datetime.now(timezone.utc)
    words = [
        Word(user_id=owner_id, word=text, word_key=key, added_at=added_at)
        for text, key in zip(cleaned, keys)
    ]

    try:
        inserted = repository.insert_batch(words)
    except UniquenessViolation:
        words_logger.warning(f"Concurrent submit detected for user {owner_id}, re-checking stored words")
        try:
            now_stored = frozenset(repository.find_existing(owner_id, set(keys)))
        except RepositoryError as e:
            word_batches_counter.labels(action="submit", outcome="storage_failure").inc()
            logger.error(f"Failed to fetch existing words after duplicate error for user {owner_id}: {e}", exc_info=True)
            raise WordStorageError("Insert failed") from e

        race_report = ConflictReport(stored=now_stored)
        word_batches_counter.labels(action="submit", outcome="race_conflict").inc()
        _record_conflicts(race_report)
        raise WordConflictError(race_report, race=True)
    except RepositoryError as e:
        word_batches_counter.labels(action="submit", outcome="storage_failure").inc()
        logger.error(f"Word insert failed for user {owner_id}: {e}", exc_info=True)
        raise WordStorageError("Insert failed") from e

    word_batches_counter.labels(action="submit", outcome="inserted").inc()
    words_inserted_counter.inc(inserted)
    words_logger.info(f"Stored {inserted} words for user {owner_id}")
    return inserted
