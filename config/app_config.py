"""Centralised application settings (dotenv + env overrides)."""
from __future__ import annotations
import os
from pathlib import Path
from dotenv import load_dotenv

ROOT = Path(__file__).parents[1]
load_dotenv(ROOT / ".env", override=False)


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class settings:                            # pylint: disable=too-few-public-methods
    TRANSPORT              = os.getenv("TRANSPORT", "mqtt").lower()

    MQTT_HOST              = os.getenv("MQTT_HOST", "localhost")
    MQTT_PORT              = int(os.getenv("MQTT_PORT", 1883))
    MQTT_USE_TLS           = _flag("MQTT_USE_TLS")
    MQTT_USERNAME          = os.getenv("MQTT_USERNAME") or None
    MQTT_PASSWORD          = os.getenv("MQTT_PASSWORD") or None
    MQTT_CLIENT_ID         = os.getenv("MQTT_CLIENT_ID") or None

    WS_URL                 = os.getenv("WS_URL", "ws://localhost:8080/ws")
    JWT_TOKEN              = os.getenv("JWT_TOKEN") or None

    TOPIC_NAMESPACE        = os.getenv("TOPIC_NAMESPACE", "protonest")
    DEVICE_ID              = os.getenv("DEVICE_ID", "device0000")
    QOS                    = int(os.getenv("QOS", 1))

    CONNECT_TIMEOUT        = float(os.getenv("CONNECT_TIMEOUT", 15))
    HEARTBEAT_INTERVAL     = float(os.getenv("HEARTBEAT_INTERVAL", 30))
    RECONNECT_BASE_DELAY   = float(os.getenv("RECONNECT_BASE_DELAY", 1))
    RECONNECT_MAX_DELAY    = float(os.getenv("RECONNECT_MAX_DELAY", 30))
    RECONNECT_MAX_ATTEMPTS = int(os.getenv("RECONNECT_MAX_ATTEMPTS", 5))

    MOISTURE_MIN           = float(os.getenv("MOISTURE_MIN", 20))
    MOISTURE_MAX           = float(os.getenv("MOISTURE_MAX", 60))
    TEMP_MAX               = float(os.getenv("TEMP_MAX", 30))

    LOG_LEVEL              = os.getenv("LOG_LEVEL", "INFO").upper()
