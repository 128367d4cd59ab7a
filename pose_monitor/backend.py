from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Iterable, Optional

from .errors import BackendSetupError

KNOWN_RUNTIMES = ("mediapipe", "tfjs", "synthetic")
ENV_PREFIX = "POSE_MONITOR_"

log = logging.getLogger(__name__)


def _env_value(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


class BackendConfigurator:
    """Applies backend selection and runtime flags before a detector is built.

    Flags are exported as ``POSE_MONITOR_<NAME>`` environment variables so
    model runtimes started afterwards pick them up.
    """

    def __init__(
        self,
        runtimes: Iterable[str] = KNOWN_RUNTIMES,
        environ: Optional[dict] = None,
    ):
        self.runtimes = set(runtimes)
        self.environ = os.environ if environ is None else environ
        self.active_backend: Optional[str] = None
        self.active_flags: dict[str, Any] = {}

    def register_runtime(self, runtime: str) -> None:
        self.runtimes.add(runtime)

    def _apply(self, flags: dict[str, Any], backend: str) -> None:
        runtime = backend.split("-")[0]
        if runtime not in self.runtimes:
            raise BackendSetupError(f"Unknown runtime {runtime!r} in backend {backend!r}")

        for name in self.active_flags:
            if name not in flags:
                self.environ.pop(ENV_PREFIX + name.upper(), None)
        for name, value in flags.items():
            self.environ[ENV_PREFIX + name.upper()] = _env_value(value)

        self.environ[ENV_PREFIX + "BACKEND"] = backend
        self.active_backend = backend
        self.active_flags = dict(flags)

    async def configure(self, flags: dict[str, Any], backend: str) -> None:
        await asyncio.to_thread(self._apply, dict(flags or {}), backend)
        log.info("backend configured: %s flags=%s", backend, self.active_flags)
