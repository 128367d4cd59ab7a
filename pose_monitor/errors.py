class DetectorConfigError(ValueError):
    """The requested model/runtime combination cannot be built."""


class BackendSetupError(RuntimeError):
    """Applying backend or environment flags failed."""


class DetectorSwapError(RuntimeError):
    """Replacing the live detector failed; the previous one is already gone."""


class PipelineSetupError(RuntimeError):
    """Capture, warm-up or recording could not be started."""
