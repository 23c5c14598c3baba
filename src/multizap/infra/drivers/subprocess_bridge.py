"""Driver que conversa com um processo externo de automação (bridge JSON lines).

O processo (ex.: script Node com whatsapp-web.js + LocalAuth) recebe o nome da
sessão, a raiz de autenticação e as opções do navegador na linha de comando, e
escreve um objeto JSON por linha no stdout:

    {"event": "qr", "data": "<payload do QR>"}
    {"event": "ready", "data": {"pushname": "..."}}
    {"event": "message", "data": {"from": "...", "body": "..."}}
    {"event": "auth_failure", "data": "<motivo>"}
    {"event": "disconnected", "data": "<motivo>"}

Linhas inválidas ou eventos desconhecidos são registrados e ignorados.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from multizap.domain.protocols.driver import DriverInitError, DriverListener, SessionDriver
from multizap.domain.session.events import (
    AuthFailure,
    Disconnected,
    DriverEvent,
    MessageReceived,
    QrIssued,
    Ready,
)
from multizap.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

REASON_DRIVER_EXITED = "driver-exited"
_STREAM_LIMIT = 1024 * 1024


def _reason(data: Any, default: str = "unknown") -> str:
    if isinstance(data, Mapping):
        data = data.get("reason") or data.get("message")
    return str(data) if data else default


def parse_bridge_line(line: str) -> DriverEvent | None:
    """Converte uma linha do bridge em evento; None para linhas ignoradas."""
    try:
        message = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(message, Mapping):
        return None

    kind = message.get("event")
    data = message.get("data")

    if kind == "qr":
        payload = data.get("qr") if isinstance(data, Mapping) else data
        return QrIssued(payload=str(payload)) if payload else None
    if kind == "ready":
        return Ready(info=dict(data) if isinstance(data, Mapping) else {})
    if kind == "message" and isinstance(data, Mapping):
        return MessageReceived(sender=str(data.get("from", "")), body=str(data.get("body", "")))
    if kind == "auth_failure":
        return AuthFailure(reason=_reason(data))
    if kind == "disconnected":
        return Disconnected(reason=_reason(data))
    return None


class SubprocessDriver(SessionDriver):
    """Driver de uma sessão apoiado num processo filho."""

    def __init__(
        self,
        name: str,
        command: Sequence[str],
        auth_root: Path,
        headless: bool = True,
        browser_args: Sequence[str] = (),
        shutdown_grace_seconds: float = 5.0,
        env: Mapping[str, str] | None = None,
    ) -> None:
        if not command:
            raise ValueError("SubprocessDriver requer um comando")
        self._name = name
        self._command = list(command)
        self._auth_root = Path(auth_root)
        self._headless = headless
        self._browser_args = list(browser_args)
        self._grace = shutdown_grace_seconds
        self._env = dict(env) if env is not None else None
        self._listener: DriverListener | None = None
        self._process: asyncio.subprocess.Process | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._saw_event = False
        self._saw_disconnect = False
        self._destroyed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def auth_dir(self) -> Path:
        return self._auth_root / f"session-{self._name}"

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    def set_listener(self, listener: DriverListener) -> None:
        self._listener = listener

    def build_argv(self) -> list[str]:
        argv = [
            *self._command,
            "--session",
            self._name,
            "--auth-root",
            str(self._auth_root),
        ]
        if self._headless:
            argv.append("--headless")
        argv.extend(f"--browser-arg={arg}" for arg in self._browser_args)
        return argv

    async def initialize(self) -> None:
        """Sobe o processo e bombeia eventos até ele terminar.

        Raises:
            DriverInitError: se o processo não sobe ou sai sem emitir eventos
        """
        if self._process is not None or self._destroyed:
            return

        argv = self.build_argv()
        try:
            self._process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._env,
                limit=_STREAM_LIMIT,
            )
        except OSError as exc:
            raise DriverInitError(f"failed to start driver process: {exc}") from exc

        logger.info(
            "driver_process_started",
            extra={"session_name": self._name, "pid": self._process.pid},
        )
        self._stderr_task = asyncio.create_task(self._drain_stderr())

        await self._pump_stdout()
        returncode = await self._process.wait()

        if self._destroyed:
            return
        if not self._saw_event:
            raise DriverInitError(f"driver process exited with code {returncode} before any event")
        if not self._saw_disconnect:
            self._emit(Disconnected(reason=REASON_DRIVER_EXITED))

    async def destroy(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True

        process = self._process
        if process is not None and process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=self._grace)
            except TimeoutError:
                logger.warning(
                    "driver_process_kill",
                    extra={"session_name": self._name, "pid": process.pid},
                )
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        if self._stderr_task is not None:
            self._stderr_task.cancel()
        logger.info("driver_process_stopped", extra={"session_name": self._name})

    async def _pump_stdout(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        stream = self._process.stdout
        while True:
            raw = await stream.readline()
            if not raw:
                return
            line = raw.decode("utf-8", errors="replace").strip()
            if not line:
                continue
            event = parse_bridge_line(line)
            if event is None:
                logger.debug(
                    "driver_line_ignored",
                    extra={"session_name": self._name, "length": len(line)},
                )
                continue
            self._emit(event)

    async def _drain_stderr(self) -> None:
        assert self._process is not None and self._process.stderr is not None
        stream = self._process.stderr
        while True:
            raw = await stream.readline()
            if not raw:
                return
            logger.debug(
                "driver_stderr",
                extra={
                    "session_name": self._name,
                    "line": raw.decode("utf-8", errors="replace").rstrip()[:500],
                },
            )

    def _emit(self, event: DriverEvent) -> None:
        if self._destroyed or self._listener is None:
            return
        self._saw_event = True
        if isinstance(event, Disconnected):
            self._saw_disconnect = True
        self._listener(event)
