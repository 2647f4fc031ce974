"""Words API routes - batch validate/submit and listing"""
import logging
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.security import require_auth, require_csrf_new
from app.db.session import get_db
from app.db.word_repository import WordRepository
from app.schemas.words import (
    WordAction, WordSort, WordBatchRequest, ValidateResponse, SubmitResponse, WordResponse
)
from app.services.word_batch_service import (
    BatchSizeError, WordTooLongError, WordConflictError, WordStorageError, validate_batch, submit_batch
)
from app.services.word_service import list_user_words

router = APIRouter(prefix="/api/words", tags=["words"])
logger = logging.getLogger(__name__)


def get_word_repository(db: Session = Depends(get_db)) -> WordRepository:
    """Dependency: word repository bound to the request's database session"""
    return WordRepository(db)


def _parse_action(action: Optional[str]) -> WordAction:
    if not action:
        return WordAction.SUBMIT
    try:
        return WordAction(action.strip().lower())
    except ValueError:
        raise HTTPException(400, {
            "kind": "BadRequest",
            "error": f"Unknown action '{action}'. Use 'validate' or 'submit'."
        })


@router.post("", response_model=None)
def post_words(
    request_data: WordBatchRequest,
    action: Optional[str] = Query(None),
    user_id: int = Depends(require_csrf_new),
    repository: WordRepository = Depends(get_word_repository)
):
    """Validate a batch (action=validate) or store it (action=submit, the default)"""
    mode = _parse_action(action)

    try:
        if mode == WordAction.VALIDATE:
            report = validate_batch(request_data.words, user_id, repository)
            return ValidateResponse(
                ok=report.ok,
                message="No conflicts" if report.ok else "Conflicts found",
                conflicts=report.to_dict()
            )

        inserted = submit_batch(request_data.words, user_id, repository)
        return SubmitResponse(insertedCount=inserted, message=f"Added {inserted} words")
    except BatchSizeError as e:
        raise HTTPException(400, {
            "kind": "BadRequest",
            "error": str(e),
            "expected": e.expected,
            "actual": e.actual
        })
    except WordTooLongError as e:
        raise HTTPException(400, {
            "kind": "BadRequest",
            "error": str(e),
            "maxLength": e.max_length,
            "tooLong": e.words
        })
    except WordConflictError as e:
        raise HTTPException(409, {
            "kind": "Conflict",
            "error": str(e),
            "conflicts": e.conflicts.to_dict()
        })
    except WordStorageError as e:
        raise HTTPException(500, {"kind": "StorageFailure", "error": str(e)})


@router.get("", response_model=List[WordResponse])
def get_words(
    sort: WordSort = Query(WordSort.DATE_DESC),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    q: Optional[str] = Query(None, max_length=255),
    user_id: int = Depends(require_auth),
    repository: WordRepository = Depends(get_word_repository)
):
    """List the current user's words"""
    try:
        return list_user_words(
            user_id,
            repository,
            sort=sort.value,
            date_from=date_from,
            date_to=date_to,
            search=q
        )
    except ValueError as e:
        raise HTTPException(400, {"kind": "BadRequest", "error": str(e)})
    except WordStorageError as e:
        raise HTTPException(500, {"kind": "StorageFailure", "error": str(e)})
