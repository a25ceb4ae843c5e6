import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from alumnilink.config import settings
from alumnilink.database import create_tables
from alumnilink.errors import AppError, RateLimitError
from alumnilink.logging_config import setup_logging
from alumnilink.services.ai_gateway import AIGateway
from alumnilink.services.file_storage import FileStorage
from alumnilink.websocket_manager import ConnectionRegistry, DeliveryRelay

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    logger.info("%s %s started", settings.APP_NAME, settings.VERSION)
    yield


async def app_error_handler(request: Request, exc: AppError):
    headers = {"Retry-After": str(exc.retry_after)} if isinstance(exc, RateLimitError) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
        for error in exc.errors()
    ]
    detail = errors[0]["message"] if errors else "Invalid request"
    return JSONResponse(
        status_code=400,
        content={"message": detail, "code": "VALIDATION_ERROR", "errors": errors},
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"message": "Internal server error", "code": "INTERNAL_ERROR"},
    )


def create_app(lifespan=lifespan) -> FastAPI:
    setup_logging()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.VERSION,
        description="AlumniLink API",
        lifespan=lifespan
    )

    app.state.relay = DeliveryRelay(ConnectionRegistry())
    app.state.ai_gateway = AIGateway()
    app.state.file_storage = FileStorage()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    from alumnilink.api.v1 import auth, users, posts, messages, chatbot, interviews, websocket

    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(users.router, prefix="/api/users", tags=["users"])
    app.include_router(posts.router, prefix="/api/posts", tags=["posts"])
    app.include_router(messages.router, prefix="/api/messages", tags=["messages"])
    app.include_router(chatbot.router, prefix="/api/chatbot", tags=["chatbot"])
    app.include_router(interviews.router, prefix="/api/interviews", tags=["interviews"])
    app.include_router(websocket.router, prefix="/api/ws", tags=["websocket"])

    app.mount("/uploads", StaticFiles(directory=app.state.file_storage.upload_dir), name="uploads")

    @app.get("/")
    async def root():
        return {"message": "AlumniLink API", "version": settings.VERSION}

    @app.get("/health")
    async def health():
        return {"status": "ok", "onlineUsers": len(app.state.relay.registry.connected_users())}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("alumnilink.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
