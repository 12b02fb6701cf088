"""CLI entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

from .camera import Camera, load_image
from .config import SnapbiteConfig, load_config
from .display import format_outcome
from .errors import SnapbiteError
from .models import Failure, PartialFailure, dumps
from .orchestrator import CaptureOrchestrator
from .vision import PathResult, create_path

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_PARTIAL = 2


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="snapbite",
        description="Photograph a meal and estimate its nutrition",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="path to a TOML config file",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="count",
        default=0,
        help="more logging (-v info, -vv debug)",
    )

    sub = parser.add_subparsers(dest="command")

    # cameras
    sub.add_parser("cameras", help="list available cameras")

    # scan
    scan_parser = sub.add_parser("scan", help="capture a photo and analyze it")
    scan_parser.add_argument(
        "--image", type=str, default=None, help="analyze an existing image file"
    )
    scan_parser.add_argument(
        "--path",
        choices=["ollama", "classifier"],
        default=None,
        help="analysis backend",
    )
    scan_parser.add_argument(
        "--prompt",
        choices=["json", "compact"],
        default=None,
        help="prompt strategy for the ollama backend",
    )
    scan_parser.add_argument(
        "--model", type=str, default=None, help="ollama model id"
    )
    scan_parser.add_argument(
        "--top-k", type=int, default=None, help="predictions to show (classifier)"
    )
    scan_parser.add_argument(
        "--save", action="store_true", help="keep the captured photo in save_dir"
    )
    scan_parser.add_argument("--json", action="store_true", help="print JSON")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    load_dotenv()
    config = load_config(args.config)
    _setup_logging(config, args.verbose)

    match args.command:
        case "cameras":
            _cmd_cameras()
        case "scan":
            _apply_overrides(config, args)
            sys.exit(asyncio.run(_cmd_scan(config, args)))


def _setup_logging(config: SnapbiteConfig, verbose: int) -> None:
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = getattr(logging, config.logging.level, logging.WARNING)
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _apply_overrides(config: SnapbiteConfig, args: argparse.Namespace) -> None:
    if args.path:
        config.analysis.path = args.path
    if args.prompt:
        config.analysis.prompt = args.prompt
    if args.model:
        config.ollama.model = args.model
    if args.top_k is not None:
        config.classifier.top_k = args.top_k


def _cmd_cameras() -> None:
    cameras = Camera.list_cameras()
    if not cameras:
        print("No cameras found.")
        return
    print(f"Available cameras: {len(cameras)}")
    for idx in cameras:
        print(f"  camera {idx}")


async def _cmd_scan(config: SnapbiteConfig, args: argparse.Namespace) -> int:
    try:
        path = create_path(config)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return EXIT_FAILURE

    if args.image:
        result = await _analyze_file(path, args.image)
    else:
        result = await _analyze_capture(config, path, save=args.save)
    if result is None:
        return EXIT_FAILURE

    if args.json:
        print(dumps(result))
    else:
        print(format_outcome(result))

    if isinstance(result, Failure):
        return EXIT_FAILURE
    if isinstance(result, PartialFailure):
        return EXIT_PARTIAL
    return EXIT_OK


async def _analyze_file(path, image: str) -> PathResult | None:
    try:
        frame = await asyncio.to_thread(load_image, image)
        await path.prepare()
        print("🔍 Analyzing...", file=sys.stderr)
        return await path.analyze(frame)
    except (SnapbiteError, FileNotFoundError) as e:
        print(str(e), file=sys.stderr)
        return None
    finally:
        await path.aclose()


async def _analyze_capture(
    config: SnapbiteConfig, path, save: bool = False
) -> PathResult | None:
    camera = Camera(
        index=config.camera.index,
        width=config.camera.width,
        height=config.camera.height,
    )
    async with CaptureOrchestrator(camera, path) as view:
        if view.error:
            print(view.error, file=sys.stderr)
            return None
        if not await view.wait_ready():
            print(view.path_error, file=sys.stderr)
            return None

        print("📷 Capturing...", file=sys.stderr)
        try:
            result = await view.capture()
        except SnapbiteError as e:
            print(str(e), file=sys.stderr)
            return None

        if save and view.last_frame is not None:
            saved = view.last_frame.save(config.camera.save_dir)
            print(f"   Photo saved: {saved}", file=sys.stderr)
        return result


if __name__ == "__main__":
    main()
