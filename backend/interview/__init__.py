# Interview module
from .state import InterviewStateMachine
from .generator import QuestionGenerator
from .conversation import ConversationTurnEngine
from .scoring import AnswerScorer, ScoringEngine
from .doubt import DoubtResponder
