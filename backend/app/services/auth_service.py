"""Authentication service - business logic for user authentication"""
import bcrypt
import logging
import secrets
from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.user import User
from app.core.metrics import login_attempts_counter
from app.db.redis import set_session, delete_session, get_session

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


class EmailAlreadyRegisteredError(ValueError):
    """Raised when registering an email that already has an account"""


def hash_password(password: str) -> str:
    """Hash a password using bcrypt"""
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash"""
    if not password_hash or not password:
        return False
    return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))


def normalize_email(email: str) -> str:
    return email.strip().lower()


def create_user(email: str, password: str, db: Session) -> User:
    """Create a new user.

    Args:
        email: User email (must be unique, stored lower-cased).
        password: Raw password for the user.
        db: Database session.
    """
    email = normalize_email(email)

    existing_user = db.query(User).filter(User.email == email).first()
    if existing_user:
        raise EmailAlreadyRegisteredError("Email already registered")

    user = User(email=email, password_hash=hash_password(password))
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Another registration for the same email committed first
        db.rollback()
        raise EmailAlreadyRegisteredError("Email already registered")
    db.refresh(user)
    return user


def authenticate_user(email: str, password: str, db: Session) -> Optional[User]:
    """Authenticate a user by email and password"""
    user = get_user_by_email(email, db)
    if not user:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def get_user_by_id(user_id: int, db: Session) -> Optional[User]:
    """Get user by ID"""
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(email: str, db: Session) -> Optional[User]:
    """Get user by email"""
    return db.query(User).filter(User.email == normalize_email(email)).first()


def create_session(user_id: int) -> str:
    """Create a new session for a user

    Returns:
        str: Session ID
    """
    session_id = secrets.token_urlsafe(32)
    set_session(session_id, user_id)
    return session_id


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "created_at": user.created_at.isoformat(),
    }


def register_user(email: str, password: str, db: Session) -> dict:
    """Registration flow: validate password, create user, start a session

    Returns:
        dict: User info and session_id

    Raises:
        ValueError: If password too short
        EmailAlreadyRegisteredError: If the email already has an account
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    user = create_user(email, password, db)
    session_id = create_session(user.id)

    logger.info(f"User registered: {user.email} (ID: {user.id})")

    return {"user": user_to_dict(user), "session_id": session_id}


def login_user(email: str, password: str, db: Session) -> dict:
    """Login flow: authenticate, create session, return user info

    Raises:
        ValueError: If invalid credentials
    """
    user = authenticate_user(email, password, db)
    if not user:
        login_attempts_counter.labels(status="failure").inc()
        raise ValueError("Invalid email or password")

    session_id = create_session(user.id)
    login_attempts_counter.labels(status="success").inc()

    logger.info(f"User logged in: {user.email} (ID: {user.id})")

    return {"user": user_to_dict(user), "session_id": session_id}


def logout_user(session_id: Optional[str]) -> dict:
    """Logout flow: delete session"""
    if session_id:
        delete_session(session_id)
        logger.info(f"User logged out (session: {session_id[:16]}...)")

    return {"message": "Logged out successfully"}


def get_current_user_from_session(session_id: Optional[str], db: Session) -> dict:
    """Get user from session, or {"user": None} when not logged in"""
    if not session_id:
        return {"user": None}

    user_id = get_session(session_id)
    if not user_id:
        return {"user": None}

    user = get_user_by_id(user_id, db)
    if not user:
        return {"user": None}

    return {"user": user_to_dict(user)}
