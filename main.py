"""
Scripture Scholar Bridge - FastAPI application for a scripture study assistant.
Streams chat turns from Gemini or OpenAI-compatible servers, bridges live voice
sessions and serves the study helpers.
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from config import Config
from routes import chat, chat_stream, models_route, study_tools, voice
from utils.http_client import HTTPClientManager
from utils.logger import app_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    yield
    await HTTPClientManager.close_all()

app = FastAPI(title=Config.APP_TITLE, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report the first invalid field in the same error shape the chat routes use."""
    errors = exc.errors()
    app_logger.warning(f"Invalid request to {request.url.path}: {errors}")

    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body") or "request"
    if first.get("type") == "string_too_long":
        message = f"{field} is longer than {first['ctx']['max_length']} characters"
    else:
        message = f"{field}: {first.get('msg', 'invalid value')}"

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": {"type": "validation_error", "field": field, "message": message}},
    )


#root endpoint
@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {"message": "Scripture Scholar Bridge is running"}

app.include_router(models_route.router, tags=["models"])
app.include_router(chat.router, tags=["chat"])
app.include_router(chat_stream.router, tags=["chat"])
app.include_router(study_tools.router, tags=["study"])
app.include_router(voice.router, tags=["voice"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
