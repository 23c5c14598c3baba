"""Contrato de assinante do canal de eventos de uma sessão."""

from __future__ import annotations

from abc import ABC, abstractmethod

from multizap.domain.outbound import OutboundEvent


class Subscriber(ABC):
    """Destino de eventos publicados numa sessão.

    `deliver` é chamado na ordem de publicação; uma exceção aqui é registrada
    pelo broadcaster e não interrompe a entrega aos demais.
    """

    @abstractmethod
    async def deliver(self, event: OutboundEvent) -> None: ...
