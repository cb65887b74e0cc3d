"""
Pump automation

LiveState consumer that drives the pump from moisture thresholds while the
device is in ``auto`` mode: ON when moisture drops below the minimum, OFF
when it rises above the maximum, at most once per edge.
"""
import asyncio
import logging
from typing import Any, Optional, Protocol, Set

from agrolive.core.exceptions import CommandError, CommandReason
from agrolive.models.events import MODE_AUTO, PUMP_OFF, PUMP_ON, LiveState, ReadingKind
from .alerts import Thresholds
from .condition_trigger import ThresholdTrigger


class CommandSender(Protocol):
    async def send_command(self, device_id: str, kind: ReadingKind, value: Any) -> Any: ...


class PumpAutomation:
    def __init__(self, commands: CommandSender, thresholds: Optional[Thresholds] = None):
        self.commands = commands
        self.thresholds = thresholds or Thresholds()
        self.logger = logging.getLogger(self.__class__.__name__)

        self.turn_on = ThresholdTrigger(
            ReadingKind.MOISTURE, below=self.thresholds.moisture_min, name="moisture_low")
        self.turn_off = ThresholdTrigger(
            ReadingKind.MOISTURE, above=self.thresholds.moisture_max, name="moisture_high")

        self._device_id: Optional[str] = None
        self._pending: Set[asyncio.Task] = set()

    def __call__(self, state: Optional[LiveState]) -> None:
        """Listener entry point; commands run as tasks on the running loop."""
        if state is None:
            return
        task = asyncio.ensure_future(self.handle(state))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def handle(self, state: LiveState) -> Optional[str]:
        """Evaluate one snapshot; returns the power value commanded, if any."""
        if state.device_id != self._device_id:
            self._device_id = state.device_id
            self.reset()

        if state.pump_mode != MODE_AUTO:
            # re-entering auto mode evaluates the current level afresh
            self.reset()
            return None

        for trigger, power in ((self.turn_on, PUMP_ON), (self.turn_off, PUMP_OFF)):
            previous = trigger.last_condition_state
            if not trigger.should_trigger(state):
                continue
            if state.pump_status == power:
                self.logger.debug(f"Pump already {power}, {trigger.name} edge consumed")
                continue
            if await self._command(state.device_id, power, trigger, previous):
                return power
        return None

    async def _command(self, device_id: str, power: str, trigger: ThresholdTrigger,
                       previous: Optional[bool]) -> bool:
        try:
            await self.commands.send_command(device_id, ReadingKind.PUMP_STATUS, power)
        except CommandError as e:
            if e.reason is CommandReason.OFFLINE:
                # leave the edge unfired; the next live tick tries again
                trigger.rollback(previous)
                self.logger.warning(f"Auto pump {power} for {device_id} deferred: {e}")
            else:
                self.logger.error(f"Auto pump {power} for {device_id} rejected: {e}")
            return False

        self.logger.info(f"Auto mode: pump {power} for {device_id} ({trigger.name})")
        return True

    def reset(self) -> None:
        self.turn_on.reset_state()
        self.turn_off.reset_state()

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
