import asyncio

import pytest

from pose_monitor.backend import BackendConfigurator
from pose_monitor.errors import BackendSetupError


def test_configure_exports_flags():
    env = {}
    backend = BackendConfigurator(environ=env)
    asyncio.run(backend.configure({"webgl_pack": True, "threads": 4}, "tfjs-webgl"))

    assert env["POSE_MONITOR_WEBGL_PACK"] == "1"
    assert env["POSE_MONITOR_THREADS"] == "4"
    assert env["POSE_MONITOR_BACKEND"] == "tfjs-webgl"
    assert backend.active_backend == "tfjs-webgl"


def test_reconfigure_drops_stale_flags():
    env = {}
    backend = BackendConfigurator(environ=env)
    asyncio.run(backend.configure({"threads": 4}, "mediapipe-cpu"))
    asyncio.run(backend.configure({}, "mediapipe-gpu"))
    assert "POSE_MONITOR_THREADS" not in env
    assert env["POSE_MONITOR_BACKEND"] == "mediapipe-gpu"


def test_unknown_runtime_fails():
    env = {}
    backend = BackendConfigurator(environ=env)
    with pytest.raises(BackendSetupError):
        asyncio.run(backend.configure({}, "webgpu-gpu"))
    assert env == {}

    backend.register_runtime("webgpu")
    asyncio.run(backend.configure({}, "webgpu-gpu"))
    assert backend.active_backend == "webgpu-gpu"
