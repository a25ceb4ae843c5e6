from typing import List, Optional

from pydantic import BaseModel, Field

from alumnilink.models.interview import Interview, Difficulty, InterviewStatus
from alumnilink.schemas.user import utc_isoformat


class InterviewGenerate(BaseModel):
    topic: str = Field(..., min_length=1, max_length=200)
    difficulty: Difficulty
    role: str = Field(..., min_length=1, max_length=200)


class InterviewSubmit(BaseModel):
    answers: List[int]
    time_spent: Optional[int] = Field(0, alias="timeSpent")

    class Config:
        populate_by_name = True


def serialize_interview(interview: Interview) -> dict:
    """Full interview; correct answers stay hidden until it is completed."""
    completed = interview.status == InterviewStatus.COMPLETED
    questions = []
    for question in interview.questions:
        item = {"question": question["question"], "options": question["options"]}
        if completed:
            item["correctAnswer"] = question["correct_answer"]
            item["explanation"] = question.get("explanation", "")
        questions.append(item)

    return {
        "id": interview.id,
        "topic": interview.topic,
        "difficulty": interview.difficulty.value,
        "role": interview.role,
        "questions": questions,
        "userAnswers": interview.user_answers or [],
        "score": interview.score,
        "percentage": interview.percentage,
        "timeSpent": interview.time_spent,
        "status": interview.status.value,
        "completedAt": utc_isoformat(interview.completed_at),
        "createdAt": utc_isoformat(interview.created_at),
    }


def serialize_results(interview: Interview) -> dict:
    answers = interview.user_answers or []
    return {
        "score": interview.score,
        "percentage": interview.percentage,
        "totalQuestions": len(interview.questions),
        "correctAnswers": interview.score,
        "timeSpent": interview.time_spent,
        "questions": [
            {
                "question": question["question"],
                "options": question["options"],
                "userAnswer": answer,
                "correctAnswer": question["correct_answer"],
                "isCorrect": answer == question["correct_answer"],
                "explanation": question.get("explanation", ""),
            }
            for question, answer in zip(interview.questions, answers)
        ],
    }
