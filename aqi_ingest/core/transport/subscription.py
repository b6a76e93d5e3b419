"""Bucle de suscripción MQTT.

paho-mqtt corre su red en un hilo propio (loop_start); los callbacks solo
publican eventos en una asyncio.Queue. El bucle async consume un evento a
la vez y lanza una tarea independiente por mensaje, sin esperarla:

  paho thread → on_message → Queue → run() → create_task(handler)

Así la recepción nunca se bloquea por la latencia de InfluxDB. El orden
de despacho es el de llegada; el orden de finalización de las escrituras
no está garantizado.

La reconexión la maneja paho (reconnect automático del loop); aquí no se
reimplementa backoff. Al reconectar se vuelve a suscribir en on_connect.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

import paho.mqtt.client as mqtt

from common.config import StatenConfig
from .broker_url import BrokerEndpoint, parse_broker_url
from .message_handler import handle_message

logger = logging.getLogger(__name__)

KEEP_ALIVE_SECONDS = 5
SUBSCRIBE_QOS = 0  # at-most-once

Handler = Callable[[StatenConfig, bytes], Awaitable[object]]
ClientFactory = Callable[[BrokerEndpoint], mqtt.Client]


@dataclass(frozen=True)
class MessageEvent:
    topic: str
    payload: bytes


@dataclass(frozen=True)
class ProtocolEvent:
    name: str


@dataclass(frozen=True)
class ErrorEvent:
    error: str


Event = Union[MessageEvent, ProtocolEvent, ErrorEvent]


class SubscriptionState(Enum):
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    DISPATCHING = "dispatching"
    IDLE = "idle"
    ERROR_LOGGED = "error_logged"


def create_paho_client(endpoint: BrokerEndpoint) -> mqtt.Client:
    """Crea el cliente paho con credenciales y TLS según la URL."""
    client = mqtt.Client(
        client_id=endpoint.client_id,
        protocol=mqtt.MQTTv311,
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
    )
    if endpoint.username:
        client.username_pw_set(endpoint.username, endpoint.password)
    if endpoint.tls:
        client.tls_set()
    return client


class SubscriptionLoop:
    """Mantiene una suscripción viva y despacha cada mensaje a su propia tarea.

    Responsabilidades:
    - Conexión al broker (keep-alive fijo de 5s)
    - Suscripción QoS 0 al topic configurado
    - Despacho fire-and-forget de mensajes al handler
    - Reporte de errores de conexión sin terminar el bucle
    """

    def __init__(
        self,
        config: StatenConfig,
        handler: Handler = handle_message,
        client_factory: Optional[ClientFactory] = None,
    ):
        self._config = config
        self._handler = handler
        self._client_factory = client_factory or create_paho_client

        # ConfigError aquí, antes de entrar al bucle
        self._endpoint = parse_broker_url(config.mqtt_url)

        self._client: Optional[mqtt.Client] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._events: Optional[asyncio.Queue] = None
        # Referencias a tareas en vuelo, para que el GC no las recolecte
        self._tasks: set[asyncio.Task] = set()

        self.state = SubscriptionState.CONNECTING

    async def run(self) -> None:
        """Corre indefinidamente. Solo termina si se cancela la tarea."""
        self._loop = asyncio.get_running_loop()
        self._events = asyncio.Queue()

        self._client = self._client_factory(self._endpoint)
        self._client.on_connect = self._on_connect
        self._client.on_connect_fail = self._on_connect_fail
        self._client.on_disconnect = self._on_disconnect
        self._client.on_subscribe = self._on_subscribe
        self._client.on_message = self._on_message

        logger.info(
            "[MQTT] Connecting to %s:%d (tls=%s, client_id=%s)",
            self._endpoint.host,
            self._endpoint.port,
            self._endpoint.tls,
            self._endpoint.client_id,
        )
        self._client.connect_async(
            self._endpoint.host,
            self._endpoint.port,
            keepalive=KEEP_ALIVE_SECONDS,
        )
        self._client.loop_start()

        try:
            while True:
                event = await self.next_event()
                self._process(event)
        finally:
            await self._shutdown()

    async def next_event(self) -> Event:
        return await self._events.get()

    def _process(self, event: Event) -> None:
        if isinstance(event, MessageEvent):
            if mqtt.topic_matches_sub(self._config.mqtt_topic, event.topic):
                self.state = SubscriptionState.DISPATCHING
                self._dispatch(event)
            self.state = SubscriptionState.IDLE
        elif isinstance(event, ErrorEvent):
            logger.warning("[MQTT] mqtt poll error: %s", event.error)
            self.state = SubscriptionState.ERROR_LOGGED
        elif event.name == "suback":
            self.state = SubscriptionState.SUBSCRIBED

    def _dispatch(self, event: MessageEvent) -> None:
        task = asyncio.create_task(self._handler(self._config, event.payload))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("[MQTT] Handler task failed: %r", exc)

    async def _shutdown(self) -> None:
        if self._client:
            try:
                # loop_stop hace join del hilo de red; no bloquear el event loop
                await asyncio.to_thread(self._client.loop_stop)
                self._client.disconnect()
            except Exception as e:
                logger.warning("[MQTT] Error stopping: %s", e)
        logger.info("[MQTT] Stopped (in_flight=%d)", len(self._tasks))

    # --- Callbacks paho (hilo de red) ------------------------------------

    def _post(self, event: Event) -> None:
        try:
            self._loop.call_soon_threadsafe(self._events.put_nowait, event)
        except RuntimeError:
            # Event loop cerrado durante el apagado
            logger.debug("[MQTT] Event dropped after shutdown: %s", event)

    def _on_connect(self, client, userdata, flags, rc, properties=None):
        """Callback de conexión."""
        if rc == 0:
            logger.info("[MQTT] Connected to broker")
            client.subscribe(self._config.mqtt_topic, qos=SUBSCRIBE_QOS)
            logger.info("[MQTT] Subscribed to %s (qos=%d)", self._config.mqtt_topic, SUBSCRIBE_QOS)
            self._post(ProtocolEvent("connack"))
        else:
            self._post(ErrorEvent(f"Connection refused: rc={rc}"))

    def _on_connect_fail(self, client, userdata):
        self._post(ErrorEvent("Connection failed"))

    def _on_disconnect(self, client, userdata, flags, rc, properties=None):
        """Callback de desconexión."""
        if rc == 0:
            self._post(ProtocolEvent("disconnect"))
        else:
            self._post(ErrorEvent(f"Disconnected: rc={rc}"))

    def _on_subscribe(self, client, userdata, mid, reason_codes, properties=None):
        # SUBACK 0x80 o mayor: el broker rechazó el filtro
        if any(getattr(rc, "value", rc) >= 0x80 for rc in reason_codes):
            self._post(ErrorEvent(f"Subscription refused: {list(reason_codes)}"))
        else:
            self._post(ProtocolEvent("suback"))

    def _on_message(self, client, userdata, msg):
        self._post(MessageEvent(topic=msg.topic, payload=bytes(msg.payload)))

    @property
    def in_flight(self) -> int:
        return len(self._tasks)
