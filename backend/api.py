from contextlib import asynccontextmanager
import logging
from typing import List, Optional

from fastapi import FastAPI, Depends, Header, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import UploadFile
import uvicorn

from .core.config import Settings, settings
from .models.chat import ChatRequest, ChatResponse, ErrorResponse, ModelsResponse, ActivityEntryResponse, Attachment
from .services.activity_service import ActivityLog, UserIdentity
from .services.chat_service import ChatService, ValidationError
from .services.file_service import FileService
from .services.providers import build_providers

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
INTERNAL_ERROR = "Internal server error"
INVALID_BODY = "Invalid request body"

logger = logging.getLogger(__name__)

# Initialize services
file_service = FileService()
activity_log = ActivityLog(max_entries=settings.ACTIVITY_LOG_MAX_ENTRIES)
chat_service = ChatService(build_providers(settings), activity_log, default_model=settings.DEFAULT_MODEL)


class InvalidRequestError(ValidationError):
    """Body decoded but does not have the shape of a chat request"""


def get_settings() -> Settings:
    return settings

def get_activity_log() -> ActivityLog:
    return activity_log

def get_chat_service() -> ChatService:
    return chat_service

def get_current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
) -> Optional[UserIdentity]:
    """Identity of the signed-in user, forwarded by the auth layer in front of this API"""
    if not x_user_email:
        return None
    return UserIdentity(
        user_id=x_user_id or x_user_email,
        email=x_user_email,
        name=x_user_name or "Unknown User",
    )


async def read_chat_request(request: Request) -> ChatRequest:
    """Decode a chat request from a JSON body or a multipart form"""
    content_type = request.headers.get("content-type", "")

    if "application/json" in content_type:
        body = await request.json()
        if not isinstance(body, dict):
            raise InvalidRequestError(INVALID_BODY)
        try:
            return ChatRequest.model_validate(body)
        except PydanticValidationError as e:
            raise InvalidRequestError(INVALID_BODY) from e

    if "multipart/form-data" in content_type:
        fields = {}
        attachments: List[Attachment] = []

        async with request.form() as form:
            for key, value in form.multi_items():
                if isinstance(value, UploadFile):
                    attachments.append(await file_service.describe_upload(value, key))
                elif key in ("message", "context", "model") and key not in fields:
                    fields[key] = value

        return ChatRequest(
            message=fields.get("message", ""),
            context=fields.get("context") or None,
            model=fields.get("model") or None,
            attachments=attachments,
        )

    return ChatRequest()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.primary_configured:
        logger.info("OpenAI provider configured (default model %s)", settings.DEFAULT_MODEL)
    else:
        logger.info("OPENAI_API_KEY not set, requests go to Ollama at %s", settings.OLLAMA_BASE_URL)
    yield


app = FastAPI(title="STUDEX Homework Assistant API", lifespan=lifespan)

@app.get("/health")
async def health_check(current_settings: Settings = Depends(get_settings)):
    """Simple health check endpoint"""
    return {
        "status": "healthy",
        "service": "STUDEX Homework Assistant API",
        "primary_configured": current_settings.primary_configured,
    }

@app.post(
    "/chat",
    response_model=ChatResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def chat(
    request: Request,
    user: Optional[UserIdentity] = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """Answer a homework question from the best available provider"""
    try:
        chat_request = await read_chat_request(request)
        return await service.handle(chat_request, user=user, request=request)

    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception as e:
        logger.error("Chat API error: %s", e, exc_info=True)
        return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR})

@app.get("/models", response_model=ModelsResponse)
async def get_models(current_settings: Settings = Depends(get_settings)):
    """Get selectable models"""
    return ModelsResponse(models=current_settings.AVAILABLE_MODELS, default=current_settings.DEFAULT_MODEL)

@app.get("/activity", response_model=List[ActivityEntryResponse], responses={403: {"model": ErrorResponse}})
async def get_activity(
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    hours: Optional[float] = None,
    x_admin_token: Optional[str] = Header(None),
    log: ActivityLog = Depends(get_activity_log),
    current_settings: Settings = Depends(get_settings),
):
    """Get activity entries, newest first"""
    if current_settings.ADMIN_TOKEN and x_admin_token != current_settings.ADMIN_TOKEN:
        return JSONResponse(status_code=403, content={"error": "Admin access required"})

    try:
        if user_id:
            entries = log.get_user_logs(user_id)
        elif action:
            entries = log.get_logs_by_action(action)
        elif hours is not None:
            entries = log.get_recent_logs(hours)
        else:
            entries = log.get_all_logs()

        return [entry.to_dict() for entry in entries]

    except Exception as e:
        logger.error("Error fetching activity logs: %s", e, exc_info=True)
        return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR})


def start_server(host="127.0.0.1", port=8000):
    logging.basicConfig(level=settings.LOG_LEVEL, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    uvicorn.run(app, host=host, port=port)

if __name__ == "__main__":
    start_server(host=settings.API_HOST, port=settings.API_PORT)
