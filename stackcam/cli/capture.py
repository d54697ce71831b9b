import os
import sys
import logging
import random
import argparse
from pathlib import Path

import numpy as np
from dotenv import load_dotenv
from tqdm import trange

# Load environment variables first
load_dotenv()

from ..exceptions import CaptureError
from ..models.capture_settings import CameraMode
from ..services.capture_session_service import CaptureSessionService
from ..services.frame_source_service import StillImageFrameSource, VideoCaptureFrameSource
from ..services.image_service import ImageService
from ..services.look_service import LookService
from ..services.stacking_service import StackingService

logger = logging.getLogger(__name__)

OUTPUT_DIR = os.getenv("CAPTURE_DIR_PATH", "data/captures")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stackcam-capture",
        description="Capture stacked, colour-graded photos from a camera or a still image.")
    parser.add_argument("source",
                        help="camera index (e.g. 0) or path to an image file")
    parser.add_argument("--mode", default=CameraMode.PRO.value,
                        choices=[m.value for m in CameraMode],
                        help="PRO stacks several frames, PHOTO/VIDEO take one")
    parser.add_argument("--frames", type=int, default=None,
                        help="frames to stack in PRO mode (default: STACK_FRAME_COUNT or 4)")
    parser.add_argument("--count", type=int, default=1,
                        help="number of photos to capture")
    parser.add_argument("--noise", type=float, default=None,
                        help="sensor noise sigma when the source is a still image")
    parser.add_argument("--delay-ms", type=float, default=None,
                        help="pacing delay between stacked frames")
    parser.add_argument("--sharpen", action="store_true",
                        help="sharpen before colour grading")
    parser.add_argument("--output-dir", default=OUTPUT_DIR)
    parser.add_argument("--analyze", action="store_true",
                        help="ask the scene-analysis model for photographer's notes")
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"))
    return parser


def open_source(source: str, noise: float = None):
    if source.isdigit():
        return VideoCaptureFrameSource(int(source))
    return StillImageFrameSource(source, noise_sigma=noise)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # --- Deterministic execution setup ---
    random_seed = int(os.getenv("RANDOM_SEED", "42"))
    np.random.seed(random_seed)
    random.seed(random_seed)

    # --- Centralized logging configuration ---
    logging.basicConfig(
        level=args.log_level.upper(),
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )

    look_service = LookService(sharpen=args.sharpen or None)
    session = CaptureSessionService(
        look_service=look_service,
        stacking_service=StackingService(look_service=look_service, frame_delay_ms=args.delay_ms),
    )
    image_service = ImageService()
    output_dir = Path(args.output_dir)

    try:
        frame_source = open_source(args.source, args.noise)
    except CaptureError as e:
        logger.error(f"Could not open source {args.source!r}: {e}")
        return 1

    try:
        for _ in trange(args.count, desc="capture", ncols=70, disable=args.count < 2):
            session.meter()
            artifact = session.capture(args.mode, frame_source, frame_count=args.frames)
            path = image_service.save_artifact(artifact, output_dir)
            print(f"{artifact.mode.value} {artifact.width}x{artifact.height} "
                  f"ISO {artifact.settings.iso} {artifact.settings.shutter_speed} "
                  f"{artifact.settings.aperture} -> {path}")

            if args.analyze:
                print(f"   {session.analyze(artifact.id)}")
    except CaptureError as e:
        logger.error(f"{e.kind}: {e}")
        return 1
    finally:
        if isinstance(frame_source, VideoCaptureFrameSource):
            frame_source.release()

    return 0


if __name__ == "__main__":
    sys.exit(main())
