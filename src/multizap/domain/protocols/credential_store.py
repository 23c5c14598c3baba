"""Protocolo de domínio para persistência de credenciais."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from multizap.domain.credentials import CredentialSnapshot, SaveResult


class CredentialStoreProtocol(ABC):
    """Contrato mínimo assíncrono para salvar/carregar a árvore de credenciais.

    Nenhum método lança exceção por falha de I/O de um arquivo individual.
    """

    @abstractmethod
    async def save(self, session_name: str, source_root: Path) -> SaveResult: ...

    @abstractmethod
    async def load(self, session_name: str) -> CredentialSnapshot: ...
