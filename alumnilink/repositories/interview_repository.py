from datetime import datetime
from typing import Optional, List, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from alumnilink.errors import ValidationError, NotFoundError, ForbiddenError
from alumnilink.models.interview import Interview, Difficulty, InterviewStatus

QUESTION_COUNT = 5
OPTION_COUNT = 4


def calculate_score(questions: List[dict], answers: List[int]) -> Tuple[int, int]:
    """Return ``(score, percentage)``; mismatched lengths score zero."""
    if not questions or len(answers) != len(questions):
        return 0, 0

    score = sum(1 for question, answer in zip(questions, answers) if answer == question["correct_answer"])
    percentage = round(score / len(questions) * 100)
    return score, percentage


class InterviewRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        user_id: int,
        topic: str,
        difficulty: Difficulty,
        role: str,
        questions: List[dict],
    ) -> Interview:
        interview = Interview(
            user_id=user_id,
            topic=topic.strip(),
            difficulty=difficulty,
            role=role.strip(),
            questions=questions,
            user_answers=[],
            status=InterviewStatus.IN_PROGRESS,
        )
        self.db.add(interview)
        await self.db.commit()
        await self.db.refresh(interview)
        return interview

    async def get_by_id(self, interview_id: int) -> Optional[Interview]:
        result = await self.db.execute(select(Interview).where(Interview.id == interview_id))
        return result.scalar_one_or_none()

    async def get_owned(self, interview_id: int, user_id: int, action: str = "view") -> Interview:
        interview = await self.get_by_id(interview_id)
        if interview is None:
            raise NotFoundError("Interview not found")
        if interview.user_id != user_id:
            raise ForbiddenError(f"Not authorized to {action} this interview")
        return interview

    async def submit(
        self,
        interview_id: int,
        user_id: int,
        answers: List[int],
        time_spent: int = 0,
    ) -> Interview:
        if len(answers) != QUESTION_COUNT:
            raise ValidationError(f"Exactly {QUESTION_COUNT} answers are required")
        if any(not isinstance(a, int) or isinstance(a, bool) or not 0 <= a < OPTION_COUNT for a in answers):
            raise ValidationError(f"Each answer must be a number between 0 and {OPTION_COUNT - 1}")

        interview = await self.get_owned(interview_id, user_id, action="submit")
        if interview.status == InterviewStatus.COMPLETED:
            raise ValidationError("Interview already completed")

        score, percentage = calculate_score(interview.questions, answers)

        interview.user_answers = list(answers)
        interview.time_spent = max(int(time_spent or 0), 0)
        interview.completed_at = datetime.utcnow()
        interview.status = InterviewStatus.COMPLETED
        interview.score = score
        interview.percentage = percentage

        await self.db.commit()
        await self.db.refresh(interview)
        return interview

    async def history(self, user_id: int, page: int = 1, limit: int = 10) -> Tuple[List[Interview], int]:
        if page < 1 or limit < 1 or limit > 50:
            raise ValidationError("Invalid pagination parameters")

        completed = (
            Interview.user_id == user_id,
            Interview.status == InterviewStatus.COMPLETED,
        )
        result = await self.db.execute(
            select(Interview).where(*completed)
            .order_by(Interview.completed_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        total = await self.db.execute(select(func.count(Interview.id)).where(*completed))
        return list(result.scalars().all()), total.scalar() or 0

    async def stats(self, user_id: int) -> dict:
        result = await self.db.execute(
            select(
                func.count(Interview.id),
                func.max(Interview.score),
                func.min(Interview.score),
                func.avg(Interview.score),
                func.max(Interview.percentage),
                func.min(Interview.percentage),
                func.avg(Interview.percentage),
            ).where(
                Interview.user_id == user_id,
                Interview.status == InterviewStatus.COMPLETED,
            )
        )
        total, high, low, avg, high_pct, low_pct, avg_pct = result.one()

        if not total:
            return {
                "totalInterviews": 0,
                "highestScore": 0,
                "lowestScore": 0,
                "averageScore": 0,
                "highestPercentage": 0,
                "lowestPercentage": 0,
                "averagePercentage": 0,
            }

        return {
            "totalInterviews": total,
            "highestScore": high,
            "lowestScore": low,
            "averageScore": round(float(avg), 2),
            "highestPercentage": high_pct,
            "lowestPercentage": low_pct,
            "averagePercentage": round(float(avg_pct), 2),
        }
