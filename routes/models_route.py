"""
Route handlers for model listing operations.
"""
from typing import Optional
from fastapi import APIRouter
from config import Config
from models.api_models import ModelInfo, ProviderSettings
from services.chat_service import ChatService
from services.providers import list_models
from utils.constants import ApiProvider, ConnectionTarget
from utils.errors import ScholarError
from utils.logger import app_logger

router = APIRouter()

NATIVE_MODELS = [
    ModelInfo(id=Config.DEFAULT_MODEL, name=Config.DEFAULT_MODEL),
    ModelInfo(id=Config.SUGGESTION_MODEL, name=Config.SUGGESTION_MODEL),
    ModelInfo(id=Config.PRO_MODEL, name=Config.PRO_MODEL),
]


@router.get("/models")
async def get_models(
    provider: ApiProvider = ApiProvider.LMSTUDIO,
    base_url: Optional[str] = None,
    api_key: Optional[str] = None,
    connection_target: ConnectionTarget = ConnectionTarget.STANDARD
):
    """List the models a provider serves."""
    if provider == ApiProvider.GOOGLE:
        return {"models": [model.model_dump() for model in NATIVE_MODELS]}

    overrides = {"provider": provider, "lmstudio_connection_target": connection_target}
    if api_key:
        overrides["openrouter_api_key" if provider == ApiProvider.OPENROUTER else "mcp_api_key"] = api_key

    try:
        if base_url:
            overrides[ChatService.base_url_field(provider, connection_target)] = base_url
        resolved_url, resolved_key = ChatService.resolve_endpoint(ProviderSettings(**overrides))
        models = await list_models(provider.value, resolved_url, resolved_key)
    except ScholarError as e:
        app_logger.error(f"Failed to list models for {provider.value}: {e}")
        return {"error": e.to_dict()}

    app_logger.info(f"Listed {len(models)} models from {provider.value}")
    return {"models": [model.model_dump() for model in models]}
