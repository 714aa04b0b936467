from foursigma import db  # noqa: F401 - imported for model imports

from .game_session import GameSession, SessionAnswer, SessionState
from .question import DailyQuestion, Question
from .user import User
from .user_response import UserResponse

__all__ = [
    "User",
    "Question",
    "DailyQuestion",
    "GameSession",
    "SessionAnswer",
    "SessionState",
    "UserResponse",
]
