#!/usr/bin/env python3
import asyncio, logging, sys
from typing import Optional
from config.logging_config import configure
from config.app_config import settings
from agrolive.core import ConnectionState
from agrolive.models import LiveState, TopicScheme
from agrolive.protocols import Credentials, TransportConfig, TransportFactory, TransportType
from agrolive.services import LiveDataService, ReconnectConfig
from agrolive.triggers import PumpAutomation, Thresholds, evaluate_alerts

log = logging.getLogger("agrolive")


def build_transport():
    transport_type = TransportType(settings.TRANSPORT)
    if transport_type is TransportType.MQTT:
        params = {
            "host": settings.MQTT_HOST,
            "port": settings.MQTT_PORT,
            "client_id": settings.MQTT_CLIENT_ID,
            "use_tls": settings.MQTT_USE_TLS,
        }
    elif transport_type is TransportType.WEBSOCKET:
        params = {"url": settings.WS_URL}
    else:
        params = {"interval": 5.0}

    cfg = TransportConfig(
        transport_type=transport_type,
        connection_params=params,
        timeout=settings.CONNECT_TIMEOUT,
        heartbeat_interval=settings.HEARTBEAT_INTERVAL,
    )
    return TransportFactory.create(transport_type, cfg)


def build_service():
    return LiveDataService(
        build_transport(),
        scheme=TopicScheme(namespace=settings.TOPIC_NAMESPACE),
        reconnect_config=ReconnectConfig(
            base_delay=settings.RECONNECT_BASE_DELAY,
            max_delay=settings.RECONNECT_MAX_DELAY,
            max_attempts=settings.RECONNECT_MAX_ATTEMPTS,
        ),
        command_qos=settings.QOS,
    )


async def async_main():
    configure()
    thresholds = Thresholds(
        moisture_min=settings.MOISTURE_MIN,
        moisture_max=settings.MOISTURE_MAX,
        temperature_max=settings.TEMP_MAX,
    )
    service = build_service()
    automation = PumpAutomation(service, thresholds)

    def on_update(state: Optional[LiveState]):
        if state is None:
            return
        log.info(f"{state.device_id}: {state.to_dict()}")
        alert = evaluate_alerts(state, thresholds)
        if alert:
            log.warning(alert.message)

    def on_connection(connected: bool):
        log.info(f"link {'up' if connected else 'down'} ({service.connection_status})")

    service.on_live_update(on_update)
    service.on_live_update(automation)
    service.on_connection_change(on_connection)

    # subscription is re-armed once the link is up
    service.subscribe_device(settings.DEVICE_ID)
    credentials = Credentials(
        token=settings.JWT_TOKEN,
        username=settings.MQTT_USERNAME,
        password=settings.MQTT_PASSWORD,
    )
    state = await service.start(credentials)
    if state is ConnectionState.DEGRADED:
        log.error(f"broker unreachable, running offline: {service.supervisor.last_error}")

    try:
        # keep process alive
        while True:
            await asyncio.sleep(3600)
    finally:
        await service.stop()

if __name__ == "__main__":
    try:
        asyncio.run(async_main())
    except KeyboardInterrupt:
        sys.exit("🌙  graceful shutdown")
