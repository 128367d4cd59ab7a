import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional

from .config import MonitorConfig, load_config
from .logging_utils import add_file_handler, setup_logger
from .pipeline import FramePipeline, PipelineSummary


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Run keypoint anomaly monitoring on a video stream")
    ap.add_argument("--config", required=True, help="Path to JSON/YAML config")

    ap.add_argument("--name")
    ap.add_argument("--source", choices=["video", "camera", "synthetic"])
    ap.add_argument("--video")
    ap.add_argument("--device")
    ap.add_argument("--fps", type=int)
    ap.add_argument("--width", type=int)
    ap.add_argument("--height", type=int)
    ap.add_argument("--max-frames", type=int)
    ap.add_argument("--duration", type=float)
    ap.add_argument("--record")
    ap.add_argument("--log-file")
    ap.add_argument("--model", choices=["posenet", "blazepose", "movenet"])
    ap.add_argument("--backend")
    ap.add_argument("--model-type")
    ap.add_argument("--max-poses", type=int)
    ap.add_argument("--mirror", action="store_true")
    ap.add_argument("--no-warm-up", action="store_true")
    ap.add_argument("--no-render", action="store_true")
    ap.add_argument("-v", "--verbose", action="store_true")

    return ap


def _apply_args(cfg: MonitorConfig, args: argparse.Namespace) -> MonitorConfig:
    device = args.device
    if isinstance(device, str) and device.isdigit():
        device = int(device)

    cfg.apply_overrides(
        name=args.name,
        source=args.source,
        video_path=args.video,
        device=device,
        fps=args.fps,
        width=args.width,
        height=args.height,
        max_frames=args.max_frames,
        duration_sec=args.duration,
        record_path=args.record,
        log_path=args.log_file,
        model=args.model,
        backend=args.backend,
        model_type=args.model_type,
        max_poses=args.max_poses,
        mirror=True if args.mirror else None,
        warm_up=False if args.no_warm_up else None,
        render=False if args.no_render else None,
    )
    return cfg


def _reload_config(args: argparse.Namespace) -> MonitorConfig:
    """Re-read the config file with the command-line overrides applied again."""
    return _apply_args(load_config(args.config), args)


def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    pipeline: FramePipeline,
    args: argparse.Namespace,
    logger: logging.Logger,
) -> None:
    def _reload() -> None:
        try:
            fresh = _reload_config(args)
        except (OSError, ValueError, RuntimeError) as exc:
            logger.error("config reload failed: %s", exc)
            return
        pipeline.request_reconfigure(fresh.detector)

    for sig in (signal.SIGINT, getattr(signal, "SIGTERM", None)):
        if sig is None:
            continue
        try:
            loop.add_signal_handler(sig, pipeline.stop)
        except (NotImplementedError, RuntimeError):
            signal.signal(sig, lambda _sig, _frame: loop.call_soon_threadsafe(pipeline.stop))

    if hasattr(signal, "SIGHUP"):
        try:
            loop.add_signal_handler(signal.SIGHUP, _reload)
        except (NotImplementedError, RuntimeError):
            pass


async def _run(pipeline: FramePipeline, args: argparse.Namespace, logger: logging.Logger) -> PipelineSummary:
    _install_signal_handlers(asyncio.get_running_loop(), pipeline, args, logger)
    return await pipeline.run()


def main(argv: Optional[list[str]] = None) -> int:
    ap = _build_parser()
    args = ap.parse_args(argv)

    cfg = load_config(args.config)
    cfg = _apply_args(cfg, args)

    logger = setup_logger(cfg.name, logging.DEBUG if args.verbose else logging.INFO)
    if cfg.log_path:
        add_file_handler(logger, cfg.name, cfg.log_path)

    pipeline = FramePipeline.from_config(cfg, logger=logger)
    summary = asyncio.run(_run(pipeline, args, logger))
    print(summary)
    return 1 if summary.halted else 0


if __name__ == "__main__":
    sys.exit(main())
