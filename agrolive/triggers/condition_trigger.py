import logging
from typing import Optional

from agrolive.core.exceptions import ConfigurationError
from agrolive.models.events import LiveState, ReadingKind
from .base_trigger import TriggerStrategy

EDGE_TYPES = ("rising", "falling", "both")


class ThresholdTrigger(TriggerStrategy):
    """Threshold condition on one numeric reading, with edge detection"""

    def __init__(self,
                 kind: ReadingKind,
                 below: Optional[float] = None,
                 above: Optional[float] = None,
                 edge_type: str = "rising",
                 name: Optional[str] = None):
        super().__init__(name)
        if (below is None) == (above is None):
            raise ConfigurationError("exactly one of 'below' or 'above' is required")
        if edge_type not in EDGE_TYPES:
            raise ConfigurationError(f"edge_type must be one of {EDGE_TYPES}, got {edge_type!r}")

        self.kind = ReadingKind(kind)
        self.below = below
        self.above = above
        self.edge_type = edge_type
        self.last_condition_state: Optional[bool] = None
        self.logger = logging.getLogger(self.__class__.__name__)

    def evaluate(self, state: LiveState) -> Optional[bool]:
        """Condition value, or None when the reading is absent or not numeric."""
        value = state.numeric(self.kind)
        if value is None:
            return None
        if self.below is not None:
            return value < self.below
        return value > self.above

    def should_trigger(self, state: LiveState) -> bool:
        current_state = self.evaluate(state)
        if current_state is None:
            # unknown reading: keep the previous condition
            return False

        if self.last_condition_state is None:
            self.last_condition_state = current_state
            if current_state and self.edge_type != "falling":
                return self._fired()
            return False

        edge_detected = self._detect_edge(self.last_condition_state, current_state)
        self.last_condition_state = current_state

        if edge_detected:
            self.logger.debug(f"{self.name}: {self.kind.value} edge ({self.edge_type})")
            return self._fired()
        return False

    def rollback(self, previous: Optional[bool]) -> None:
        """Forget the last evaluation so the same edge fires again on the next state."""
        self.last_condition_state = previous
        self.execution_count = max(0, self.execution_count - 1)

    def _detect_edge(self, previous_state: bool, current_state: bool) -> bool:
        if self.edge_type == "rising":
            return not previous_state and current_state
        elif self.edge_type == "falling":
            return previous_state and not current_state
        else:  # "both"
            return previous_state != current_state

    def reset_state(self) -> None:
        self.last_condition_state = None
        self.execution_count = 0
