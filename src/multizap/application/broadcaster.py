"""Fan-out de eventos por sessão (publish/subscribe).

Cada sessão tem seu próprio canal. Publicar num canal sem assinantes é no-op:
nada é enfileirado para quem entrar depois.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from multizap.domain.outbound import OutboundEvent
from multizap.domain.protocols.subscriber import Subscriber
from multizap.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class EventBroadcaster:
    """Entrega eventos aos assinantes atuais de cada sessão.

    Ordem FIFO garantida por sessão enquanto cada sessão publicar a partir de
    um único consumidor; nenhuma ordem entre sessões diferentes.
    """

    def __init__(self) -> None:
        self._channels: defaultdict[str, list[Subscriber]] = defaultdict(list)

    def join(self, session_name: str, subscriber: Subscriber) -> None:
        """Inscreve o assinante no canal (inscrição repetida é ignorada)."""
        channel = self._channels[session_name]
        if subscriber not in channel:
            channel.append(subscriber)
            logger.debug(
                "subscriber_joined",
                extra={"session_name": session_name, "subscribers": len(channel)},
            )

    def leave(self, session_name: str, subscriber: Subscriber) -> None:
        """Remove o assinante; idempotente."""
        channel = self._channels.get(session_name)
        if not channel or subscriber not in channel:
            return
        channel.remove(subscriber)
        if not channel:
            del self._channels[session_name]
        logger.debug("subscriber_left", extra={"session_name": session_name})

    def subscribers(self, session_name: str) -> tuple[Subscriber, ...]:
        return tuple(self._channels.get(session_name, ()))

    async def publish(self, session_name: str, event: OutboundEvent) -> int:
        """Entrega o evento a cada assinante atual, em sequência.

        Falha de um assinante é registrada e não impede a entrega aos demais.
        Retorna quantos receberam com sucesso.
        """
        targets = self.subscribers(session_name)
        if not targets:
            return 0

        delivered = 0
        for subscriber in targets:
            try:
                await subscriber.deliver(event)
                delivered += 1
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning(
                    "subscriber_delivery_failed",
                    extra={
                        "session_name": session_name,
                        "event_type": event.type.value,
                        "error": str(exc),
                    },
                )
        return delivered


class QueueSubscriber(Subscriber):
    """Assinante com fila limitada, drenada por quem consome (ex.: WebSocket).

    Fila cheia descarta o evento novo e registra; o publicador nunca bloqueia
    esperando um consumidor lento.
    """

    def __init__(self, maxsize: int = 100) -> None:
        self._queue: asyncio.Queue[OutboundEvent] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    async def deliver(self, event: OutboundEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "subscriber_queue_full",
                extra={"session_name": event.session, "dropped": self.dropped},
            )

    async def get(self) -> OutboundEvent:
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()
