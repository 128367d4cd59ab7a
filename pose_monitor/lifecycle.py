"""Detector hot-swap state machine.

The live detector sits in a single slot. A reconfiguration request only
records what changed; the swap itself happens in ``reconcile()``, which the
frame pipeline calls at the top of every tick before any inference, so no
inference is ever issued against a disposed detector.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from .config import DetectorConfig
from .detectors import PoseDetector, create_detector
from .errors import DetectorSwapError

DetectorBuilder = Callable[[DetectorConfig], PoseDetector]
BackendSetup = Callable[[dict[str, Any], str], Awaitable[None]]

log = logging.getLogger(__name__)


class LifecycleState(str, Enum):
    READY = "ready"
    SWAPPING = "swapping"


class DetectorLifecycleManager:
    def __init__(
        self,
        config: DetectorConfig,
        configure_backend: BackendSetup,
        build: DetectorBuilder = create_detector,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.configure_backend = configure_backend
        self.build = build
        self.logger = logger or log

        self.state = LifecycleState.READY
        self.model_changed = False
        self.backend_changed = False
        self.flags_changed = False
        self.swaps = 0
        self._requests = 0

        self._pending: Optional[DetectorConfig] = None
        self._detector: Optional[PoseDetector] = None
        self._cancel_next_frame: Optional[Callable[[], None]] = None

    async def start(self) -> PoseDetector:
        """Apply the initial backend and build the first detector."""
        try:
            await self.configure_backend(self.config.flags, self.config.backend)
            self._detector = self.build(self.config)
        except Exception as exc:
            raise DetectorSwapError(f"Failed to create detector: {exc}") from exc
        return self._detector

    @property
    def detector(self) -> PoseDetector:
        if self._detector is None:
            raise RuntimeError("No live detector")
        return self._detector

    @property
    def has_detector(self) -> bool:
        return self._detector is not None

    @property
    def is_changing(self) -> bool:
        return (
            self.model_changed
            or self.backend_changed
            or self.flags_changed
            or self.state is LifecycleState.SWAPPING
        )

    def on_swap_start(self, cancel_next_frame: Callable[[], None]) -> None:
        self._cancel_next_frame = cancel_next_frame

    def request(
        self,
        config: Optional[DetectorConfig] = None,
        *,
        model_changed: bool = False,
        backend_changed: bool = False,
        flags_changed: bool = False,
    ) -> bool:
        """Record a reconfiguration. Returns True if a swap is now pending."""
        base = self._pending or self.config
        if config is not None:
            backend_changed = backend_changed or config.backend != base.backend
            flags_changed = flags_changed or config.flags != base.flags
            model_changed = model_changed or config != base
            self._pending = replace(config)

        if model_changed or backend_changed or flags_changed:
            self._requests += 1
        self.model_changed = self.model_changed or model_changed
        self.backend_changed = self.backend_changed or backend_changed
        self.flags_changed = self.flags_changed or flags_changed
        if self.is_changing:
            self.logger.info(
                "reconfiguration requested model=%s backend=%s flags=%s",
                self.model_changed, self.backend_changed, self.flags_changed,
            )
        return self.is_changing

    async def reconcile(self) -> bool:
        """Swap the detector if a reconfiguration is pending.

        Returns True when a swap happened. Raises DetectorSwapError when the
        new detector cannot be set up; the slot is left empty.
        """
        if not (self.model_changed or self.backend_changed or self.flags_changed):
            return False

        self.model_changed = True
        self.state = LifecycleState.SWAPPING
        if self._cancel_next_frame is not None:
            self._cancel_next_frame()

        target = self._pending or self.config
        seen = self._requests
        setup_backend = self.backend_changed or self.flags_changed
        self.backend_changed = False
        self.flags_changed = False
        old, self._detector = self._detector, None
        if old is not None:
            old.dispose()

        try:
            if setup_backend:
                await self.configure_backend(target.flags, target.backend)
            self._detector = self.build(target)
        except Exception as exc:
            self.logger.error("detector swap failed: %s", exc)
            raise DetectorSwapError(f"Failed to swap detector: {exc}") from exc

        self.config = target
        self.state = LifecycleState.READY
        self.swaps += 1
        self.logger.info("detector swapped: %s", self._detector.name())

        if self._requests == seen:
            self._pending = None
            self.model_changed = False
        else:
            # A request arrived while backend setup was awaited; swap again next tick.
            self.logger.info("reconfiguration arrived during swap, another swap pending")
        return True

    def close(self) -> None:
        old, self._detector = self._detector, None
        if old is not None:
            old.dispose()
