from enum import Enum as PyEnum

from sqlalchemy import Column, Integer, ForeignKey, String, JSON, DateTime, Enum
from sqlalchemy.orm import relationship
from .base import BaseModel


class Difficulty(str, PyEnum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class InterviewStatus(str, PyEnum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class Interview(BaseModel):
    __tablename__ = "interviews"

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    topic = Column(String(200), nullable=False)
    difficulty = Column(Enum(Difficulty, values_callable=lambda e: [m.value for m in e]), nullable=False)
    role = Column(String(200), nullable=False)
    # [{"question", "options", "correct_answer", "explanation"}, ...]
    questions = Column(JSON, default=list, nullable=False)
    user_answers = Column(JSON, default=list, nullable=False)
    score = Column(Integer, default=0, nullable=False)
    percentage = Column(Integer, default=0, nullable=False)
    time_spent = Column(Integer, default=0, nullable=False)
    status = Column(
        Enum(InterviewStatus, values_callable=lambda e: [m.value for m in e]),
        default=InterviewStatus.IN_PROGRESS,
        nullable=False,
        index=True,
    )
    completed_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="interviews")
