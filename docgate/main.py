"""Command-line entry point for docgate."""

import argparse
import json
import logging
import sys
import threading
from typing import List, Optional

from .config.settings import load_config
from .core.constants import APP_NAME, VALID_ROTATIONS, VERSION
from .core.exceptions import ExtractionError, TemplateError, WebcamError
from .core.logging_config import CorrelationContext, configure_logging, logging_manager
from .services.frame_analyzer import FrameAnalyzer
from .services.pipeline import ValidationPipeline
from .services.reference_template import ReferenceTemplate
from .services.text_extraction import load_extractor
from .services.webcam_service import WebcamService
from .utils.image_utils import frame_from_image, load_image

logger = logging.getLogger(__name__)

EXIT_VALID = 0
EXIT_INVALID = 1
EXIT_FATAL = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=APP_NAME, description="Identity card presence validation")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("--config", default="config.json", help="Path to config.json")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")

    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="Validate a single still image")
    check.add_argument("image", help="Image file to analyse")
    check.add_argument("--rotation", type=int, default=0, choices=VALID_ROTATIONS,
                       help="Clockwise rotation of the image in degrees")

    camera = sub.add_parser("camera", help="Run the live pipeline from a webcam")
    camera.add_argument("--extractor", required=True,
                        help="Text extractor as 'package.module:attribute'")
    camera.add_argument("--camera-index", type=int, default=None)
    camera.add_argument("--rotation", type=int, default=0, choices=VALID_ROTATIONS)
    return parser


def _setup_logging(config) -> None:
    configure_logging(
        log_level=config.log_level,
        log_dir=config.log_dir,
        enable_file_logging=config.enable_file_logging,
        structured_logging=config.structured_logging,
        application_name=APP_NAME,
    )


def run_check(args, config) -> int:
    try:
        template = ReferenceTemplate.from_config(config)
    except TemplateError as e:
        logger.error(f"Cannot start: {e}")
        return EXIT_FATAL

    try:
        image = load_image(args.image)
    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        return EXIT_FATAL

    analyzer = FrameAnalyzer.from_config(template, config)
    result = analyzer.analyze(frame_from_image(image, args.rotation)).result
    print(json.dumps(result.to_dict(), indent=2))
    return EXIT_VALID if result.is_valid else EXIT_INVALID


def run_camera(args, config) -> int:
    try:
        extractor = load_extractor(args.extractor)
        template = ReferenceTemplate.from_config(config)
    except (ExtractionError, TemplateError) as e:
        logger.error(f"Cannot start: {e}")
        return EXIT_FATAL

    finished = threading.Event()
    outcome = {"validated": False}

    def on_validated(effect):
        outcome["validated"] = True
        logger.info(f"Card validated with extraction confidence {effect.extraction.confidence:.2f}")
        finished.set()

    def on_retries_exhausted(effect):
        logger.warning(f"Validation failed {effect.retries} times ({effect.reason}); waiting for a new card")

    if args.camera_index is not None:
        config.camera_index = args.camera_index
    source = WebcamService.from_config(config)
    source.rotation_degrees = args.rotation

    pipeline = ValidationPipeline.from_config(
        config, extractor, on_validated=on_validated,
        on_retries_exhausted=on_retries_exhausted, template=template, frame_source=source,
    )
    try:
        pipeline.start()
        while not finished.wait(timeout=0.5):
            pass
    except WebcamError as e:
        logger.error(str(e))
        return EXIT_FATAL
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        pipeline.stop()

    return EXIT_VALID if outcome["validated"] else EXIT_INVALID


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.config, args.env_file)
    _setup_logging(config)

    try:
        if args.command == "check":
            with CorrelationContext():
                return run_check(args, config)
        return run_camera(args, config)
    finally:
        logging_manager.shutdown()


if __name__ == "__main__":
    sys.exit(main())
