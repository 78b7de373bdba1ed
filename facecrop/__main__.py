"""
__main__.py – CLI entry point for facecrop.

Usage:
    facecrop input.mp4
    facecrop --interval 6 --output output.mp4 input.mp4
    facecrop -f 6 -o output.mp4 -i input.mp4
    facecrop --print-filter input.mp4 > crop.txt
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from facecrop.config import config
from facecrop.detect import FaceDetector, FrameDecodeError, decode_png
from facecrop.pipeline import CropSettings, plan_crop, run
from facecrop.timeline import EmptyTimeline
from facecrop.video import VideoProcessingError, default_output_path

log = logging.getLogger("facecrop")


def _aspect(value: str) -> tuple[int, int]:
    w, sep, h = value.partition(":")
    try:
        aspect = int(w), int(h)
    except ValueError:
        aspect = None
    if not sep or aspect is None or min(aspect) <= 0:
        raise argparse.ArgumentTypeError(f"expected W:H, got {value!r}")
    return aspect


def _positive_int(value: str) -> int:
    n = int(value)
    if n < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return n


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="facecrop",
        description="Face recognition-based video cropper.",
    )
    parser.add_argument("input_file", nargs="?", help="Input video to process.")
    parser.add_argument("-i", "--input", dest="input_opt", help="Input video to process.")
    parser.add_argument(
        "-f", "--interval", type=_positive_int,
        help="Every nth frame to analyze. Defaults to half of FPS.",
    )
    parser.add_argument(
        "-o", "--output",
        help="Output video. Defaults to [filename]_facecrop[.ext]",
    )
    parser.add_argument(
        "-l", "--disable-lerp", action="store_true",
        help="Disables interpolation between samples. Faster to render but choppy; "
             "useful when the interval is 1.",
    )
    parser.add_argument(
        "-c", "--codec",
        help="FFmpeg output video codec. 'copy' uses the same codec as the input file.",
    )
    parser.add_argument(
        "--aspect", type=_aspect, default=None,
        help=f"Crop aspect ratio as W:H (default {config.ASPECT}).",
    )
    parser.add_argument(
        "--extrapolate", action="store_true",
        help="Keep the last interpolation segment open-ended instead of holding the last position.",
    )
    parser.add_argument(
        "--clamp", action="store_true",
        help="Keep the crop window inside the source frame.",
    )
    parser.add_argument("--models-dir", help="Directory holding the DNN face model files.")
    parser.add_argument(
        "--print-filter", action="store_true",
        help="Print the crop filter instead of rendering.",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def settings_from_args(args: argparse.Namespace) -> CropSettings:
    settings = CropSettings(
        interval=args.interval,
        codec=args.codec,
    )
    if args.disable_lerp:
        settings.interpolate = False
    if args.extrapolate:
        settings.hold_last = False
    if args.clamp:
        settings.clamp_to_frame = True
    if args.aspect:
        settings.aspect = args.aspect
    return settings


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    input_path = args.input_opt or args.input_file
    if not input_path:
        parser.print_help()
        return 1

    problems = config.validate()
    if problems:
        for problem in problems:
            log.error("Invalid configuration: %s", problem)
        return 1

    if not Path(input_path).exists():
        log.error("Input file not found: %s", input_path)
        return 1

    settings = settings_from_args(args)
    detector = FaceDetector(models_dir=args.models_dir)

    try:
        if args.print_filter:
            plan = asyncio.run(plan_crop(input_path, decode_png, detector, settings))
            print(plan.filter)
            return 0

        output_path = args.output or default_output_path(input_path)
        log.info("Input file: %s", input_path)
        log.info("Output file: %s", output_path)
        asyncio.run(run(input_path, output_path, decode_png, detector, settings))
    except EmptyTimeline:
        log.error("No frames were sampled from %s", input_path)
        return 1
    except (VideoProcessingError, FrameDecodeError) as e:
        log.error("%s", e)
        return 1

    log.info("done")
    return 0


if __name__ == "__main__":
    sys.exit(main())
