"""Word service - listing a user's stored words"""
import logging
from datetime import date
from typing import Dict, List, Optional

from app.core.config import settings
from app.db.word_repository import RepositoryError, WordRepository
from app.services.word_batch_service import WordStorageError

logger = logging.getLogger(__name__)


def list_user_words(
    user_id: int,
    repository: WordRepository,
    sort: str = "date-desc",
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    search: Optional[str] = None
) -> List[Dict]:
    """List a user's words, newest first unless another sort is given

    Results are capped at WORDS_LIST_LIMIT.

    Raises:
        ValueError: If date_from is after date_to or the sort order is unknown
        WordStorageError: If the query fails
    """
    if date_from and date_to and date_from > date_to:
        raise ValueError("'from' date must not be after 'to' date")

    search = search.strip() if search else None

    try:
        words = repository.list_words(
            user_id,
            sort=sort,
            date_from=date_from,
            date_to=date_to,
            search=search,
            limit=settings.WORDS_LIST_LIMIT
        )
    except RepositoryError as e:
        logger.error(f"Failed to fetch words for user {user_id}: {e}", exc_info=True)
        raise WordStorageError("Fetch failed") from e

    return [word.to_dict() for word in words]
