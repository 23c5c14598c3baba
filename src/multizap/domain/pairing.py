"""Política de limite de tentativas de pareamento (QR codes).

Puro: não guarda contador, apenas decide a partir do contador da sessão.
"""

from __future__ import annotations

from dataclasses import dataclass


class InvalidThresholdError(ValueError):
    """Limite de tentativas fora do intervalo aceito."""


@dataclass(frozen=True, slots=True)
class PairingThrottle:
    """Decide quando as tentativas de pareamento de uma sessão se esgotaram.

    O QR de número `threshold` ainda é aceito; o de número `threshold + 1`
    esgota a sessão.
    """

    threshold: int

    def __post_init__(self) -> None:
        if self.threshold < 1:
            raise InvalidThresholdError(
                f"pairing threshold must be >= 1, got {self.threshold}"
            )

    @staticmethod
    def should_continue(attempt_count: int, threshold: int) -> bool:
        """True enquanto `attempt_count` não ultrapassou `threshold`."""
        return attempt_count <= threshold

    def allows(self, attempt_count: int) -> bool:
        """Atalho de `should_continue` com o limite configurado."""
        return self.should_continue(attempt_count, self.threshold)

    def remaining(self, attempt_count: int) -> int:
        """Quantos QR codes ainda cabem antes do limite (nunca negativo)."""
        return max(self.threshold - attempt_count, 0)
