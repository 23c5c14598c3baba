"""Validação de nomes de sessão.

O nome vira clientId do LocalAuth do driver e segmento de caminho no store
de credenciais, por isso só aceita letras, dígitos, `_` e `-`.
"""

from __future__ import annotations

import re

_VALID_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


class InvalidSessionNameError(ValueError):
    """Nome de sessão rejeitado na borda (nunca chega ao FSM)."""

    def __init__(self, reason: str, name: str | None = None) -> None:
        super().__init__(f"invalid session name ({reason}): {name!r}")
        self.reason = reason
        self.name = name


def normalize_session_name(raw: str | None) -> str:
    """Retorna o nome aparado ou lança InvalidSessionNameError.

    Motivos possíveis: "empty", "invalid-characters".
    """
    name = (raw or "").strip()
    if not name:
        raise InvalidSessionNameError("empty", raw)
    if not _VALID_NAME.match(name):
        raise InvalidSessionNameError("invalid-characters", raw)
    return name
