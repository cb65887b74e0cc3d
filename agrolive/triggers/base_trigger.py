from abc import ABC, abstractmethod
from typing import Optional

from agrolive.models.events import LiveState


class TriggerStrategy(ABC):
    """Abstract base class for LiveState-driven triggers"""

    def __init__(self, name: Optional[str] = None):
        self.name = name or self.__class__.__name__
        self.execution_count: int = 0

    @abstractmethod
    def should_trigger(self, state: LiveState) -> bool:
        """Determine if trigger condition is met"""
        pass

    @abstractmethod
    def reset_state(self) -> None:
        """Reset trigger internal state"""
        pass

    def _fired(self) -> bool:
        self.execution_count += 1
        return True
