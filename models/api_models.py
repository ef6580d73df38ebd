"""
Pydantic data models for API requests and responses.
"""
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from config import Config
from utils.constants import ApiProvider, ChatMode, ConnectionTarget


class ProviderSettings(BaseModel):
    """Per-request provider configuration; defaults come from the environment."""
    provider: ApiProvider = Field(default_factory=lambda: ApiProvider(Config.DEFAULT_PROVIDER))
    google_api_key: str = Field(default_factory=lambda: Config.GOOGLE_API_KEY)
    openrouter_api_key: str = Field(default_factory=lambda: Config.OPENROUTER_API_KEY)
    mcp_api_key: str = Field(default_factory=lambda: Config.MCP_API_KEY)
    lmstudio_base_url: str = Field(default_factory=lambda: Config.LMSTUDIO_BASE_URL)
    openrouter_base_url: str = Field(default_factory=lambda: Config.OPENROUTER_BASE_URL)
    mcp_base_url: str = Field(default_factory=lambda: Config.MCP_BASE_URL)
    lmstudio_connection_target: ConnectionTarget = Field(
        default_factory=lambda: ConnectionTarget(Config.LMSTUDIO_CONNECTION_TARGET)
    )
    model: str = Field(default_factory=lambda: Config.DEFAULT_MODEL)

    model_config = ConfigDict(frozen=True, protected_namespaces=())


class Citation(BaseModel):
    """Grounding source attached to an answer."""
    kind: Literal["web", "maps"] = "web"
    uri: Optional[str] = None
    title: Optional[str] = None


class StudyDay(BaseModel):
    day: int
    topic: str
    scriptures: List[str] = Field(min_length=3, max_length=4)
    reflection_question: str


class StudyPlan(BaseModel):
    title: str
    days: List[StudyDay] = Field(min_length=1)


class QuizQuestion(BaseModel):
    question: str
    options: List[str] = Field(min_length=4, max_length=4)
    correctAnswerIndex: int = Field(ge=0, le=3)
    userAnswerIndex: Optional[int] = Field(None, ge=0, le=3)


class MultiQuiz(BaseModel):
    title: str
    questions: List[QuizQuestion] = Field(min_length=5, max_length=5)


class Message(BaseModel):
    """Chat message model."""
    id: str
    sender: Literal["user", "bot"]
    text: str = ""
    thinking: Optional[str] = None
    study_plan: Optional[StudyPlan] = None
    multi_quiz: Optional[MultiQuiz] = None
    citations: Optional[List[Citation]] = None
    is_suggestion: bool = False


class ChatRequest(BaseModel):
    """Chat request model with conversation history."""
    prompt: str = Field(..., min_length=1, max_length=20000)
    mode: ChatMode = ChatMode.CHAT
    history: List[Message] = Field(default_factory=list)
    settings: ProviderSettings = Field(default_factory=ProviderSettings)
    reading_context: Optional[str] = Field(None, max_length=500, description="Scripture passage the user is reading")


class RetryRequest(BaseModel):
    """Retry the user turn that produced `bot_message_id`."""
    bot_message_id: str
    mode: ChatMode = ChatMode.CHAT
    history: List[Message]
    settings: ProviderSettings = Field(default_factory=ProviderSettings)


class CrossReferenceRequest(BaseModel):
    scripture: str = Field(..., min_length=1, max_length=200)
    settings: ProviderSettings = Field(default_factory=ProviderSettings)


class CrossReference(BaseModel):
    scripture: str
    explanation: str


class CrossReferenceResult(BaseModel):
    mainScripture: str
    references: List[CrossReference]


class JournalRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=20000)
    settings: ProviderSettings = Field(default_factory=ProviderSettings)


class JournalInsights(BaseModel):
    summary: str
    principles: List[str]
    suggestedScripture: str


class SuggestionRequest(BaseModel):
    history: List[Message]
    mode: ChatMode = ChatMode.CHAT
    settings: ProviderSettings = Field(default_factory=ProviderSettings)


class SpeechRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=5000)
    settings: ProviderSettings = Field(default_factory=ProviderSettings)


class ModelInfo(BaseModel):
    id: str
    name: str
    is_free: bool = False
