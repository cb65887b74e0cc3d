"""Threshold alerts and pump automation."""

from .base_trigger import TriggerStrategy
from .condition_trigger import ThresholdTrigger
from .alerts import Alert, AlertLevel, Thresholds, evaluate_alerts
from .pump_automation import PumpAutomation

__all__ = [
    'TriggerStrategy',
    'ThresholdTrigger',
    'Alert',
    'AlertLevel',
    'Thresholds',
    'evaluate_alerts',
    'PumpAutomation',
]
