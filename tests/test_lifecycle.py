import asyncio
from dataclasses import replace

import pytest

from pose_monitor.config import DetectorConfig
from pose_monitor.errors import DetectorConfigError, DetectorSwapError
from pose_monitor.lifecycle import DetectorLifecycleManager, LifecycleState


class DummyDetector:
    def __init__(self, label, log):
        self.label = label
        self.log = log
        self.disposed = False

    def name(self):
        return self.label

    def estimate(self, image, max_poses=1, flip_horizontal=False):
        return []

    def dispose(self):
        self.disposed = True
        self.log.append(f"dispose:{self.label}")


class Harness:
    def __init__(self, config, fail_build=False):
        self.log = []
        self.built = []
        self.fail_build = fail_build
        self.manager = DetectorLifecycleManager(config, self.configure, build=self.build)
        self.manager.on_swap_start(lambda: self.log.append("cancel"))

    async def configure(self, flags, backend):
        self.log.append(f"configure:{backend}:{sorted(flags)}")

    def build(self, config):
        if self.fail_build:
            raise DetectorConfigError("bad model")
        det = DummyDetector(config.model, self.log)
        self.built.append(det)
        self.log.append(f"build:{config.model}")
        return det


def test_start_configures_backend_and_builds():
    h = Harness(DetectorConfig(model="blazepose", backend="synthetic", flags={"WEBGL_PACK": True}))
    det = asyncio.run(h.manager.start())
    assert h.log == ["configure:synthetic:['WEBGL_PACK']", "build:blazepose"]
    assert h.manager.detector is det
    assert h.manager.state is LifecycleState.READY


def test_identical_request_is_not_a_swap():
    cfg = DetectorConfig(backend="synthetic")
    h = Harness(cfg)
    asyncio.run(h.manager.start())
    assert h.manager.request(replace(cfg)) is False
    assert h.manager.is_changing is False
    assert asyncio.run(h.manager.reconcile()) is False


def test_model_change_disposes_before_building():
    cfg = DetectorConfig(model="blazepose", backend="synthetic")
    h = Harness(cfg)

    async def scenario():
        old = await h.manager.start()
        h.log.clear()
        assert h.manager.request(replace(cfg, model="movenet")) is True
        assert h.manager.is_changing
        assert h.manager.model_changed and not h.manager.backend_changed
        swapped = await h.manager.reconcile()
        return old, swapped

    old, swapped = asyncio.run(scenario())
    assert swapped is True
    assert old.disposed
    assert h.log == ["cancel", "dispose:blazepose", "build:movenet"]
    assert h.manager.detector.name() == "movenet"
    assert h.manager.config.model == "movenet"
    assert not h.manager.is_changing
    assert h.manager.swaps == 1


def test_backend_change_reapplies_backend():
    cfg = DetectorConfig(backend="synthetic")
    h = Harness(cfg)

    async def scenario():
        await h.manager.start()
        h.log.clear()
        h.manager.request(replace(cfg, backend="mediapipe-gpu"))
        assert h.manager.backend_changed
        await h.manager.reconcile()

    asyncio.run(scenario())
    assert h.log == ["cancel", "dispose:blazepose", "configure:mediapipe-gpu:[]", "build:blazepose"]
    assert h.manager.config.backend == "mediapipe-gpu"


def test_request_during_backend_setup_is_not_lost():
    cfg = DetectorConfig(model="blazepose", backend="synthetic")
    h = Harness(cfg)
    mid_swap = []

    async def configure_and_request(flags, backend):
        h.log.append(f"configure:{backend}")
        if not mid_swap:
            mid_swap.append(h.manager.request(replace(cfg, model="movenet", backend="synthetic-gpu")))

    async def scenario():
        await h.manager.start()
        h.manager.configure_backend = configure_and_request
        h.manager.request(replace(cfg, model="posenet", backend="synthetic-gpu"))
        first = await h.manager.reconcile()
        after_first = (h.manager.detector.name(), h.manager.is_changing)
        second = await h.manager.reconcile()
        return first, after_first, second

    first, after_first, second = asyncio.run(scenario())
    assert mid_swap == [True]
    assert first is True
    assert after_first == ("posenet", True)
    assert second is True
    assert h.manager.detector.name() == "movenet"
    assert h.manager.config.model == "movenet"
    assert h.manager.is_changing is False
    assert h.manager.state is LifecycleState.READY


def test_identical_request_during_swap_settles_in_one_swap():
    cfg = DetectorConfig(model="blazepose", backend="synthetic")
    h = Harness(cfg)
    target = replace(cfg, model="posenet", backend="synthetic-gpu")

    async def configure_and_repeat(flags, backend):
        h.manager.request(replace(target))

    async def scenario():
        await h.manager.start()
        h.manager.configure_backend = configure_and_repeat
        h.manager.request(target)
        await h.manager.reconcile()
        return await h.manager.reconcile()

    assert asyncio.run(scenario()) is False
    assert h.manager.detector.name() == "posenet"
    assert h.manager.is_changing is False
    assert h.manager.swaps == 1


def test_flag_request_without_config_rebuilds_current():
    h = Harness(DetectorConfig(backend="synthetic"))

    async def scenario():
        await h.manager.start()
        h.log.clear()
        h.manager.request(flags_changed=True)
        await h.manager.reconcile()

    asyncio.run(scenario())
    assert h.log == ["cancel", "dispose:blazepose", "configure:synthetic:[]", "build:blazepose"]


def test_failed_build_is_fatal_and_leaves_slot_empty():
    cfg = DetectorConfig(backend="synthetic")
    h = Harness(cfg)

    async def scenario():
        old = await h.manager.start()
        h.fail_build = True
        h.manager.request(replace(cfg, model="posenet"))
        with pytest.raises(DetectorSwapError):
            await h.manager.reconcile()
        return old

    old = asyncio.run(scenario())
    assert old.disposed
    assert not h.manager.has_detector
    assert h.manager.is_changing
    with pytest.raises(RuntimeError):
        h.manager.detector


def test_start_failure_is_wrapped():
    h = Harness(DetectorConfig(backend="synthetic"), fail_build=True)
    with pytest.raises(DetectorSwapError):
        asyncio.run(h.manager.start())


def test_close_disposes_current():
    h = Harness(DetectorConfig(backend="synthetic"))
    det = asyncio.run(h.manager.start())
    h.manager.close()
    assert det.disposed
    assert not h.manager.has_detector
