"""Service layer tests"""
import pytest
from datetime import date
from unittest.mock import Mock

from app.core.config import settings
from app.db.redis import get_session, SESSION_TTL
from app.db.word_repository import RepositoryError, WordRepository
from app.models.word import Word
from app.services.auth_service import (
    EmailAlreadyRegisteredError, hash_password, verify_password, create_user,
    register_user, login_user, logout_user, get_current_user_from_session
)
from app.services.word_batch_service import WordStorageError
from app.services.word_service import list_user_words


@pytest.mark.critical
class TestAuthService:
    """Test authentication service"""

    def test_password_hashing(self):
        hashed = hash_password("Secret123!")
        assert hashed != "Secret123!"
        assert verify_password("Secret123!", hashed)
        assert not verify_password("secret123!", hashed)
        assert not verify_password("", hashed)

    def test_create_user_lowercases_email(self, db_session):
        user = create_user(email="  Mixed@Example.COM ", password="Secret123!", db=db_session)
        assert user.email == "mixed@example.com"

    def test_create_user_duplicate_email(self, test_user, db_session):
        with pytest.raises(EmailAlreadyRegisteredError):
            create_user(email=test_user.email, password="Secret123!", db=db_session)

    def test_register_starts_session(self, db_session, mock_redis):
        result = register_user("new@example.com", "Secret123!", db_session)

        assert result["user"]["email"] == "new@example.com"
        assert get_session(result["session_id"]) == result["user"]["id"]
        assert 0 < mock_redis.ttl(f"session:{result['session_id']}") <= SESSION_TTL

    def test_register_rejects_short_password(self, db_session, mock_redis):
        with pytest.raises(ValueError, match="at least 8 characters"):
            register_user("new@example.com", "short", db_session)

    def test_login_success(self, test_user, db_session, mock_redis):
        result = login_user("Reader@Example.com", "TestPassword123!", db_session)
        assert result["user"]["id"] == test_user.id
        assert get_session(result["session_id"]) == test_user.id

    def test_login_wrong_password(self, test_user, db_session, mock_redis):
        with pytest.raises(ValueError, match="Invalid email or password"):
            login_user(test_user.email, "nope", db_session)

    def test_login_unknown_email(self, db_session, mock_redis):
        with pytest.raises(ValueError):
            login_user("ghost@example.com", "TestPassword123!", db_session)

    def test_logout_deletes_session(self, test_user, db_session, mock_redis):
        session_id = login_user(test_user.email, "TestPassword123!", db_session)["session_id"]

        logout_user(session_id)

        assert get_session(session_id) is None
        assert get_current_user_from_session(session_id, db_session) == {"user": None}

    def test_logout_without_session(self, mock_redis):
        assert logout_user(None) == {"message": "Logged out successfully"}


@pytest.mark.high
class TestWordService:
    """Test listing through the word service"""

    def test_inverted_range_rejected(self, test_user, db_session):
        with pytest.raises(ValueError):
            list_user_words(
                test_user.id, WordRepository(db_session),
                date_from=date(2025, 2, 1), date_to=date(2025, 1, 1)
            )

    def test_blank_search_is_ignored(self, test_user, db_session):
        db_session.add(Word(user_id=test_user.id, word="Lucid", word_key="lucid"))
        db_session.commit()

        words = list_user_words(test_user.id, WordRepository(db_session), search="   ")
        assert [w["word"] for w in words] == ["Lucid"]

    def test_passes_list_limit(self, test_user):
        repository = Mock(spec=WordRepository)
        repository.list_words.return_value = []

        list_user_words(test_user.id, repository)

        assert repository.list_words.call_args.kwargs["limit"] == settings.WORDS_LIST_LIMIT

    def test_fetch_failure_is_storage_error(self, test_user):
        repository = Mock(spec=WordRepository)
        repository.list_words.side_effect = RepositoryError("timeout")

        with pytest.raises(WordStorageError, match="Fetch failed"):
            list_user_words(test_user.id, repository)
