"""
Models package exports.
"""
from models.api_models import (
    ProviderSettings,
    Citation,
    Message,
    ChatRequest,
    RetryRequest,
    StudyPlan,
    StudyDay,
    MultiQuiz,
    QuizQuestion,
)
from models.chat_models import StreamDelta, ThinkingSplit, StreamAccumulator, TurnAction, TurnUpdate, ChatTurn

__all__ = [
    'ProviderSettings',
    'Citation',
    'Message',
    'ChatRequest',
    'RetryRequest',
    'StudyPlan',
    'StudyDay',
    'MultiQuiz',
    'QuizQuestion',
    'StreamDelta',
    'ThinkingSplit',
    'StreamAccumulator',
    'TurnAction',
    'TurnUpdate',
    'ChatTurn'
]
