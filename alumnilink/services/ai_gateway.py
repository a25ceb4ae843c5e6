"""
AI gateway

Request/response wrapper around the Cohere chat API used by the assistant
chat and the mock-interview question generator.

Failure policy:
- chat: one retry with the bare question on the fallback model, then a
  canned reply. Configuration and quota errors surface immediately.
- interview generation: any provider or shape failure is a hard error,
  there is no safe fallback for structured output.
"""

import json
import logging
import random
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import cohere
from fastapi import Request

from alumnilink.config import settings
from alumnilink.errors import ValidationError, ServiceUnavailableError

logger = logging.getLogger(__name__)

MAX_CHAT_MESSAGE_LENGTH = 1000
INTERVIEW_QUESTION_COUNT = 5
INTERVIEW_OPTION_COUNT = 4

CHAT_PROMPT = """You are an AI assistant for AlumniLink, a platform connecting students and alumni.
Your role is to help students with their academic doubts, career guidance, and provide helpful advice.

User Context:
- User Name: {name}
- User Role: {role}
- Platform: AlumniLink (Student-Alumni networking platform)

Guidelines for your responses:
1. Be helpful, informative, and encouraging
2. Provide practical, actionable advice
3. Keep responses concise but comprehensive
4. If it's a technical question, provide clear explanations with examples
5. For career advice, offer specific, actionable guidance
6. Encourage networking and connecting with alumni when relevant
7. Be supportive and motivational
8. If you don't know something, be honest and suggest alternative resources
9. DO NOT use markdown formatting like *** or ** in your responses
10. Use plain text only without special formatting
11. Avoid using code blocks or backticks
12. Structure your response naturally using line breaks only

Student Question: "{question}"

Please provide a helpful response:"""

INTERVIEW_PROMPT = """Generate exactly 5 multiple-choice interview questions for the following:

Topic: {topic}
Difficulty Level: {difficulty}
Role: {role}

Requirements:
1. Each question should have exactly 4 options (A, B, C, D)
2. Questions should be relevant to the {role} role and {topic} topic
3. Difficulty should match the {difficulty} level
4. Include a brief explanation for the correct answer
5. Format the response as valid JSON

Expected JSON format:
{{
  "questions": [
    {{
      "question": "Question text here?",
      "options": ["Option A", "Option B", "Option C", "Option D"],
      "correctAnswer": 0,
      "explanation": "Brief explanation of why this is correct"
    }}
  ]
}}

Make sure the correctAnswer is the index (0-3) of the correct option in the options array."""

FALLBACK_REPLIES = [
    "I'm having trouble connecting to the AI service right now. Please try again later.",
    "I'm currently unavailable. Feel free to ask alumni in our community while I'm getting fixed!",
    "Temporary service disruption. Our team is working on restoring AI capabilities.",
    "I can't process your request at the moment. Please try again in a few minutes.",
]
CAREER_FALLBACK_REPLY = (
    "I'm currently unable to access career resources. "
    "Check our alumni network for professionals in your field!"
)

BASE_SUGGESTIONS = [
    "How do I prepare for technical interviews?",
    "What career paths are available in my field?",
    "How to build a professional network?",
    "Tips for balancing coursework and projects",
]
ROLE_SUGGESTIONS = {
    "Student": [
        "How to get research opportunities?",
        "What skills are employers looking for?",
        "How to choose between grad school and industry?",
    ],
    "Alumni": [
        "How to transition to management roles?",
        "Tips for mentoring students effectively",
        "How to stay updated with industry trends?",
    ],
}


@dataclass
class ChatReply:
    text: str
    fallback: bool = False
    timestamp: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "message": self.text,
            "timestamp": self.timestamp or datetime.utcnow(),
            "success": True,
        }
        if self.fallback:
            data["fallback"] = True
        return data


def clean_response(text: str) -> str:
    """Strip markdown artifacts the model adds despite the instructions."""
    cleaned = re.sub(r"```.*?```", "", text, flags=re.DOTALL)
    cleaned = re.sub(r"\*{3}(.*?)\*{3}", "", cleaned)
    cleaned = re.sub(r"^#+\s*", "", cleaned, flags=re.MULTILINE)
    cleaned = re.sub(r"\*\*(.*?)\*\*", r"\1", cleaned)
    cleaned = re.sub(r"\*(.*?)\*", r"\1", cleaned)
    cleaned = re.sub(r"\n\s*\n", "\n\n", cleaned)
    return cleaned.strip()


def fallback_reply(message: str) -> str:
    lowered = message.lower()
    if "career" in lowered or "job" in lowered:
        return CAREER_FALLBACK_REPLY
    return random.choice(FALLBACK_REPLIES)


def parse_interview_questions(text: str) -> List[Dict[str, Any]]:
    """Extract and shape-check the question list from a model reply."""
    match = re.search(r"\{.*\}", text or "", flags=re.DOTALL)
    if not match:
        raise ValueError("No JSON object found in response")

    data = json.loads(match.group(0))
    questions = data.get("questions") if isinstance(data, dict) else None
    if not isinstance(questions, list) or len(questions) != INTERVIEW_QUESTION_COUNT:
        raise ValueError(f"Expected exactly {INTERVIEW_QUESTION_COUNT} questions")

    parsed = []
    for item in questions:
        if not isinstance(item, dict):
            raise ValueError("Question must be an object")
        question = item.get("question")
        options = item.get("options")
        correct = item.get("correctAnswer")
        if not isinstance(question, str) or not question.strip():
            raise ValueError("Question text missing")
        if (
            not isinstance(options, list)
            or len(options) != INTERVIEW_OPTION_COUNT
            or not all(isinstance(option, str) for option in options)
        ):
            raise ValueError(f"Each question needs exactly {INTERVIEW_OPTION_COUNT} options")
        if isinstance(correct, bool) or not isinstance(correct, int) or not 0 <= correct < INTERVIEW_OPTION_COUNT:
            raise ValueError("correctAnswer must be an index between 0 and 3")

        parsed.append({
            "question": question.strip(),
            "options": options,
            "correct_answer": correct,
            "explanation": str(item.get("explanation") or ""),
        })
    return parsed


def _is_configuration_error(error: Exception) -> bool:
    text = str(error).lower()
    return "api_key" in text or "api key" in text or "unauthorized" in text


def _is_quota_error(error: Exception) -> bool:
    text = str(error).lower()
    return "quota" in text or "rate limit" in text or "too many requests" in text


class AIGateway:
    """Thin client over Cohere chat; ``client`` is injectable for tests."""

    def __init__(self, client: Any = None, api_key: Optional[str] = None):
        self.model = settings.COHERE_MODEL
        self.fallback_model = settings.COHERE_FALLBACK_MODEL
        self.temperature = settings.COHERE_TEMPERATURE

        api_key = api_key if api_key is not None else settings.COHERE_API_KEY
        if client is not None:
            self.client = client
        elif api_key:
            self.client = cohere.AsyncClient(api_key=api_key)
            logger.info("AI gateway initialized with model: %s", self.model)
        else:
            self.client = None
            logger.warning("AI gateway disabled - COHERE_API_KEY not set")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def _require_client(self):
        if not self.enabled:
            raise ServiceUnavailableError(
                "AI service is currently unavailable. Please check the server configuration.",
                code="AI_NOT_CONFIGURED",
            )

    async def _complete(self, message: str, model: str, **kwargs) -> str:
        response = await self.client.chat(message=message, model=model, **kwargs)
        return response.text or ""

    async def chat(self, message: str, user_name: str, user_role: str) -> ChatReply:
        message = (message or "").strip()
        if not message:
            raise ValidationError("Message is required")
        if len(message) > MAX_CHAT_MESSAGE_LENGTH:
            raise ValidationError(f"Message cannot exceed {MAX_CHAT_MESSAGE_LENGTH} characters")
        self._require_client()

        prompt = CHAT_PROMPT.format(name=user_name, role=user_role, question=message)
        try:
            raw = await self._complete(prompt, self.model, temperature=self.temperature, p=0.9)
            logger.info("Chatbot interaction - role=%s, query length=%d", user_role, len(message))
            return ChatReply(text=clean_response(raw))
        except Exception as error:
            logger.error("AI chat error: %s", error)
            if _is_configuration_error(error):
                raise ServiceUnavailableError(
                    "AI service configuration error. Please contact support.",
                    code="AI_CONFIGURATION_ERROR",
                )
            if _is_quota_error(error):
                raise ServiceUnavailableError(
                    "AI service is temporarily unavailable due to high demand. Please try again later.",
                    code="AI_QUOTA_EXCEEDED",
                )

        try:
            raw = await self._complete(message, self.fallback_model)
            return ChatReply(text=clean_response(raw), fallback=True)
        except Exception as error:
            logger.error("Fallback AI error: %s", error)
            return ChatReply(text=fallback_reply(message), fallback=True)

    async def generate_interview(self, topic: str, difficulty: str, role: str) -> List[Dict[str, Any]]:
        self._require_client()

        prompt = INTERVIEW_PROMPT.format(topic=topic, difficulty=difficulty, role=role)
        try:
            raw = await self._complete(prompt, self.model, temperature=self.temperature)
        except Exception as error:
            logger.error("AI interview generation error: %s", error)
            raise ServiceUnavailableError(
                "AI service is temporarily unavailable. Please try again later.",
                code="AI_GENERATION_FAILED",
            )

        try:
            return parse_interview_questions(raw)
        except ValueError as error:
            logger.error("Failed to parse AI interview response: %s", error)
            raise ServiceUnavailableError(
                "Failed to generate questions. Please try again.",
                code="AI_INVALID_RESPONSE",
            )

    def suggestions(self, role: str) -> List[str]:
        return BASE_SUGGESTIONS + ROLE_SUGGESTIONS.get(role, [])

    async def health(self) -> Dict[str, Any]:
        health = {
            "status": "OK",
            "aiConfigured": self.enabled,
            "timestamp": datetime.utcnow(),
        }
        if self.enabled:
            try:
                health["aiWorking"] = bool(await self._complete("Hello", self.model))
            except Exception as error:
                health["aiWorking"] = False
                health["aiError"] = str(error)
        return health


def get_ai_gateway(request: Request) -> AIGateway:
    return request.app.state.ai_gateway
