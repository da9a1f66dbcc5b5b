"""
Conversation coordination: the turn engine, sub-agents and the primary session.
"""

from .turn_engine import ConversationTurnEngine, TurnRequest
from .agent_manager import AgentManager
from .session_controller import PrimarySessionController

__all__ = [
    "ConversationTurnEngine",
    "TurnRequest",
    "AgentManager",
    "PrimarySessionController",
]
