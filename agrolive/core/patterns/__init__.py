from .state_machine import StateMachine, ConnectionState
from .observer import ListenerSubject

__all__ = ["StateMachine", "ConnectionState", "ListenerSubject"]
