from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Optional, Union

from ..config import DetectorConfig
from ..errors import DetectorConfigError

MEDIAPIPE_SOLUTION_PATH = "https://cdn.jsdelivr.net/npm/@mediapipe/pose"


@dataclass(frozen=True)
class PoseNetOptions:
    quant_bytes: int = 4
    architecture: str = "MobileNetV1"
    output_stride: int = 16
    input_resolution: tuple[int, int] = (500, 500)
    multiplier: float = 0.75


@dataclass(frozen=True)
class BlazePoseOptions:
    runtime: str = "mediapipe"
    model_type: str = "full"
    solution_path: Optional[str] = None


@dataclass(frozen=True)
class MoveNetOptions:
    model_type: str = "singlepose_lightning"


DetectorOptions = Union[PoseNetOptions, BlazePoseOptions, MoveNetOptions]

BLAZEPOSE_RUNTIMES = ("mediapipe", "tfjs")
BLAZEPOSE_TYPES = ("lite", "full", "heavy")


def _with_overrides(opts: DetectorOptions, overrides: dict) -> DetectorOptions:
    if not overrides:
        return opts
    names = {f.name for f in dataclasses.fields(opts)}
    unknown = sorted(set(overrides) - names)
    if unknown:
        raise DetectorConfigError(
            f"Unknown option(s) for {type(opts).__name__}: {', '.join(unknown)}"
        )
    values = dict(overrides)
    if "input_resolution" in values:
        values["input_resolution"] = tuple(int(v) for v in values["input_resolution"])
    return dataclasses.replace(opts, **values)


def _posenet(config: DetectorConfig) -> PoseNetOptions:
    return PoseNetOptions()


def _blazepose(config: DetectorConfig) -> BlazePoseOptions:
    runtime = config.runtime
    if runtime not in BLAZEPOSE_RUNTIMES:
        raise DetectorConfigError(
            f"BlazePose supports runtimes {', '.join(BLAZEPOSE_RUNTIMES)}; got {runtime!r}"
        )
    if config.model_type not in BLAZEPOSE_TYPES:
        raise DetectorConfigError(f"Unknown BlazePose model type {config.model_type!r}")
    solution_path = MEDIAPIPE_SOLUTION_PATH if runtime == "mediapipe" else None
    return BlazePoseOptions(runtime=runtime, model_type=config.model_type, solution_path=solution_path)


def _movenet(config: DetectorConfig) -> MoveNetOptions:
    if config.model_type == "lightning":
        return MoveNetOptions("singlepose_lightning")
    return MoveNetOptions("singlepose_thunder")


_BUILDERS = {
    "posenet": _posenet,
    "blazepose": _blazepose,
    "movenet": _movenet,
}


def detector_options(config: DetectorConfig) -> DetectorOptions:
    try:
        build = _BUILDERS[config.model]
    except KeyError:
        raise DetectorConfigError(f"Unsupported model {config.model!r}") from None
    return _with_overrides(build(config), config.options)
