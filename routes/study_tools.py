"""
Route handlers for the study helpers: cross-references, journal insights,
proactive suggestions and read-aloud speech.
"""
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from models.api_models import CrossReferenceRequest, JournalRequest, SpeechRequest, SuggestionRequest
from services.study_tools import StudyToolsService
from utils.errors import ProviderMisconfigured, ScholarError
from utils.logger import app_logger

router = APIRouter()


def error_response(e: ScholarError) -> JSONResponse:
    status_code = 400 if isinstance(e, ProviderMisconfigured) else 502
    return JSONResponse(status_code=status_code, content={"error": e.to_dict()})


@router.post("/cross-references")
async def cross_references(request: CrossReferenceRequest):
    try:
        result = await StudyToolsService.get_cross_references(request.settings, request.scripture)
    except ScholarError as e:
        app_logger.error(f"Cross-reference error: {e}")
        return error_response(e)
    return result.model_dump()


@router.post("/journal/insights")
async def journal_insights(request: JournalRequest):
    try:
        insights = await StudyToolsService.get_journal_insights(request.settings, request.text)
    except ScholarError as e:
        app_logger.error(f"Journal insights error: {e}")
        return error_response(e)
    return insights.model_dump()


@router.post("/suggestion")
async def suggestion(request: SuggestionRequest):
    """Proactive follow-up suggestion; null when there is none."""
    text = await StudyToolsService.get_proactive_suggestion(request.settings, request.history, request.mode)
    return {"suggestion": text}


@router.post("/speech")
async def speech(request: SpeechRequest):
    try:
        audio = await StudyToolsService.generate_speech(request.settings, request.text)
    except ScholarError as e:
        app_logger.error(f"Speech error: {e}")
        return error_response(e)
    return {"audio": audio}
