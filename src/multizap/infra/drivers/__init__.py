"""Drivers de automação e a factory que escolhe o backend por configuração.

Backends:
- scripted: ScriptedDriver (dev/testes)
- subprocess: SubprocessDriver (bridge para processo externo)
"""

from __future__ import annotations

from typing import Any

from multizap.domain.protocols.driver import DriverFactory, SessionDriver
from multizap.infra.drivers.scripted import ScriptedDriver
from multizap.infra.drivers.subprocess_bridge import SubprocessDriver, parse_bridge_line


class DriverConfigError(ValueError):
    """Backend de driver desconhecido ou incompleto."""


def create_driver_factory(settings: Any) -> DriverFactory:
    """Cria a fábrica de drivers conforme `settings.driver_backend`."""
    backend = str(getattr(settings, "driver_backend", "scripted")).lower()

    if backend == "scripted":

        def build_scripted(name: str) -> SessionDriver:
            return ScriptedDriver(name=name, auth_dir=settings.session_auth_dir(name))

        return build_scripted

    if backend == "subprocess":
        if not settings.driver_command:
            raise DriverConfigError("driver_backend=subprocess requer driver_command")

        def build_subprocess(name: str) -> SessionDriver:
            return SubprocessDriver(
                name=name,
                command=settings.driver_command,
                auth_root=settings.driver_auth_root,
                headless=settings.driver_headless,
                browser_args=settings.driver_browser_args,
                shutdown_grace_seconds=settings.driver_shutdown_grace_seconds,
            )

        return build_subprocess

    raise DriverConfigError(f"Unsupported driver backend: {backend}")


__all__ = [
    "DriverConfigError",
    "ScriptedDriver",
    "SubprocessDriver",
    "create_driver_factory",
    "parse_bridge_line",
]
