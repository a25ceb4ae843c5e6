import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from alumnilink.auth import get_current_active_user
from alumnilink.database import get_db
from alumnilink.models.user import User
from alumnilink.repositories.interview_repository import InterviewRepository
from alumnilink.schemas.interview import (
    InterviewGenerate,
    InterviewSubmit,
    serialize_interview,
    serialize_results,
)
from alumnilink.services.ai_gateway import AIGateway, get_ai_gateway

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/generate", status_code=status.HTTP_201_CREATED)
async def generate_interview(
    payload: InterviewGenerate,
    db: AsyncSession = Depends(get_db),
    gateway: AIGateway = Depends(get_ai_gateway),
    current_user: User = Depends(get_current_active_user)
):
    questions = await gateway.generate_interview(payload.topic, payload.difficulty.value, payload.role)
    interview = await InterviewRepository(db).create(
        user_id=current_user.id,
        topic=payload.topic,
        difficulty=payload.difficulty,
        role=payload.role,
        questions=questions,
    )
    logger.info("Interview %s generated for user %s", interview.id, current_user.id)

    data = serialize_interview(interview)
    return {
        "interviewId": interview.id,
        "questions": data["questions"],
        "topic": data["topic"],
        "difficulty": data["difficulty"],
        "role": data["role"],
    }


@router.post("/{interview_id}/submit")
async def submit_interview(
    interview_id: int,
    payload: InterviewSubmit,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    interview = await InterviewRepository(db).submit(
        interview_id, current_user.id, payload.answers, payload.time_spent or 0
    )
    return {"message": "Interview submitted successfully", "results": serialize_results(interview)}


@router.get("/history")
async def get_history(
    page: int = Query(1),
    limit: int = Query(10),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    interviews, total = await InterviewRepository(db).history(current_user.id, page, limit)
    return {
        "interviews": [serialize_interview(interview) for interview in interviews],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


@router.get("/stats")
async def get_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return await InterviewRepository(db).stats(current_user.id)


@router.get("/{interview_id}")
async def get_interview(
    interview_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    interview = await InterviewRepository(db).get_owned(interview_id, current_user.id)
    return serialize_interview(interview)
