import uuid
from enum import Enum

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer,
    String, Text, Uuid, func, Enum as SQLAEnum
)
from sqlalchemy.orm import relationship

from sinhala_scribe.db.base_class import Base


class CreditTransactionType(str, Enum):
    """Credit ledger entry type"""
    SIGNUP_BONUS = "signup_bonus"
    PURCHASE = "purchase"
    TRANSCRIPTION = "transcription"


class Profile(Base):
    """Billing profile for an identity issued by the external auth provider"""
    __tablename__ = "profiles"
    __table_args__ = (CheckConstraint("credits >= 0", name="ck_profiles_credits_non_negative"),)

    # Same id as the identity provider's subject
    id = Column(Uuid, primary_key=True)
    email = Column(String, index=True, nullable=True)
    full_name = Column(String, nullable=True)

    credits = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    transactions = relationship("CreditTransaction", back_populates="user", cascade="all, delete-orphan")
    transcriptions = relationship("Transcription", back_populates="user", cascade="all, delete-orphan")


class CreditTransaction(Base):
    """Ledger row for every credit movement"""
    __tablename__ = "credit_transactions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("profiles.id"), nullable=False, index=True)

    amount = Column(Integer, nullable=False)  # Negative for usage
    type = Column(SQLAEnum(CreditTransactionType), nullable=False)
    balance_after = Column(Integer, nullable=False)
    description = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("Profile", back_populates="transactions")


class Transcription(Base):
    """Durable transcript record, immutable once written"""
    __tablename__ = "transcriptions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("profiles.id"), nullable=False, index=True)

    title = Column(String, nullable=True)
    transcription_text = Column(Text, nullable=False)
    audio_duration_seconds = Column(Integer, nullable=True)
    credits_used = Column(Integer, nullable=False, default=0)
    is_partial = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    user = relationship("Profile", back_populates="transcriptions")
