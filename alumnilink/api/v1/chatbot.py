from fastapi import APIRouter, Depends
from pydantic import BaseModel

from alumnilink.auth import get_current_active_user
from alumnilink.models.user import User
from alumnilink.services.ai_gateway import AIGateway, get_ai_gateway

router = APIRouter()


class ChatRequest(BaseModel):
    message: str = ""


@router.post("/chat")
async def chat(
    request: ChatRequest,
    gateway: AIGateway = Depends(get_ai_gateway),
    current_user: User = Depends(get_current_active_user)
):
    reply = await gateway.chat(request.message, current_user.name, current_user.role.value)
    return reply.to_dict()


@router.get("/suggestions")
async def get_suggestions(
    gateway: AIGateway = Depends(get_ai_gateway),
    current_user: User = Depends(get_current_active_user)
):
    return {"suggestions": gateway.suggestions(current_user.role.value)}


@router.get("/health")
async def chatbot_health(gateway: AIGateway = Depends(get_ai_gateway)):
    return await gateway.health()
