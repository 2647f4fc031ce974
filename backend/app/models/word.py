"""Word model"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from app.models.base import Base


class Word(Base):
    """Vocabulary words - one row per word, immutable once inserted

    `word` keeps the spelling as submitted; `word_key` is its lower-cased form
    and is what uniqueness is enforced on.
    """
    __tablename__ = "words"
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    word = Column(String(255), nullable=False)
    word_key = Column(String(255), nullable=False)
    added_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    
    # Relationship
    user = relationship("User", back_populates="words")
    
    # The unique constraint is the source of truth for concurrent submits
    __table_args__ = (
        Index('ix_words_user_added_at', 'user_id', 'added_at'),
        UniqueConstraint('user_id', 'word_key', name='uq_words_user_word_key'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "word": self.word,
            "key": self.word_key,
            "added_at": self.added_at.isoformat() if self.added_at else None,
        }
