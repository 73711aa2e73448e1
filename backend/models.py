# models.py
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from db import Base

class Lab(Base):
    __tablename__ = "labs"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(512), nullable=False)
    description = Column(Text)
    slug = Column(String(80), unique=True, index=True)
    cover_image_url = Column(String(1024))
    accent_color = Column(String(7))   # "#RRGGBB"
    created_at = Column(DateTime, default=datetime.utcnow)

    days = relationship("Day", back_populates="lab", cascade="all, delete-orphan", order_by="Day.day_number")

class Day(Base):
    __tablename__ = "days"
    __table_args__ = (UniqueConstraint("lab_id", "day_number", name="uq_days_lab_day"),)

    id = Column(Integer, primary_key=True, index=True)
    lab_id = Column(Integer, ForeignKey("labs.id", ondelete="CASCADE"), index=True, nullable=False)
    day_number = Column(Integer, nullable=False)
    title = Column(String(512), nullable=False)
    video_url = Column(String(1024))     # legacy readers; mirrors the primary video block
    content = Column(Text)               # serialized block payload (or legacy plain text)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    lab = relationship("Lab", back_populates="days")

class DayLearningState(Base):
    __tablename__ = "day_learning_state"
    __table_args__ = (UniqueConstraint("user_id", "lab_id", "day_number", name="uq_state_user_lab_day"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), index=True, nullable=False)
    lab_id = Column(Integer, ForeignKey("labs.id", ondelete="CASCADE"), nullable=False)
    day_number = Column(Integer, nullable=False)
    notes = Column(Text, nullable=False, default="")
    checklist_selections = Column(JSON, nullable=False, default=dict)   # {block_id: [item_id]}
    quiz_answers = Column(JSON, nullable=False, default=dict)           # {block_id: {question_id: index}}
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

class Progress(Base):
    __tablename__ = "progress"
    __table_args__ = (UniqueConstraint("user_id", "lab_id", "day_number", name="uq_progress_user_lab_day"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), index=True, nullable=False)
    lab_id = Column(Integer, ForeignKey("labs.id", ondelete="CASCADE"), nullable=False)
    day_number = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

class Entitlement(Base):
    __tablename__ = "lab_entitlements"
    __table_args__ = (UniqueConstraint("user_id", "lab_id", name="uq_entitlement_user_lab"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), index=True, nullable=False)
    lab_id = Column(Integer, ForeignKey("labs.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(16), nullable=False, default="active")   # "active" | "revoked"
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

class Comment(Base):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    lab_id = Column(Integer, ForeignKey("labs.id", ondelete="CASCADE"), index=True, nullable=False)
    day_number = Column(Integer, nullable=False)
    user_id = Column(String(64), nullable=False)
    user_email = Column(String(320))
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
