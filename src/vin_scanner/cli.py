"""
VIN Scanner command line.

Examples:
  # Validate one or more VINs
  vin-scanner validate 1HGCM82633A004352 1HGCM82633A004353

  # Show the VIN structure
  vin-scanner decode 1HGCM82633A004352 --json

  # Run a single image through the text path
  vin-scanner scan label.jpg --mode text

  # Scan from the first webcam until a VIN is accepted
  vin-scanner camera --device 0 --mode barcode
"""

import argparse
import json
import logging
import sys
from dataclasses import replace
from typing import List, Optional

import cv2

from . import __version__
from .config import ScannerConfig, setup_logging
from .core.errors import CameraAccessError, ConfigurationError, EngineInitError, ScannerError
from .core.frame import Frame, crop_roi
from .core.vin_utils import decode_vin, validate_vin
from .pipeline import FrameOrchestrator, ScannerMode
from .providers import ScannerContext

logger = logging.getLogger(__name__)


def _load_config(args) -> ScannerConfig:
    config = ScannerConfig.load(args.config) if args.config else ScannerConfig()
    if args.verbose:
        config.logging = replace(config.logging, level='DEBUG')
    setup_logging(config.logging)
    return config


def _print_json(data) -> None:
    print(json.dumps(data, indent=2))


def cmd_validate(args) -> int:
    results = [validate_vin(vin) for vin in args.vins]
    if args.json:
        _print_json([r.to_dict() for r in results])
    else:
        for vin, result in zip(args.vins, results):
            if result.is_valid:
                print(f"{result.normalized_vin}  OK")
            else:
                print(f"{vin}  INVALID")
                for error in result.errors:
                    print(f"    - {error}")
    return 0 if all(r.is_valid for r in results) else 1


def cmd_decode(args) -> int:
    try:
        details = decode_vin(args.vin)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        _print_json(details.to_dict())
        return 0

    print(f"VIN:           {details.vin}")
    print(f"WMI:           {details.wmi} ({details.region})")
    print(f"VDS:           {details.vds}")
    print(f"Check digit:   {details.check_digit}")
    print(f"Model year:    {details.model_year or 'unknown'} ({details.model_year_code})")
    print(f"Plant:         {details.plant_code}")
    print(f"Serial:        {details.serial_number}")
    print(f"Valid:         {'yes' if details.is_valid else 'no'}")
    return 0


def _report(orchestrator: FrameOrchestrator, as_json: bool) -> int:
    status = orchestrator.status
    if as_json:
        _print_json(status.to_dict())
    elif status.last_result:
        result = status.last_result
        print(f"{result.value}  ({result.source}, confidence {result.confidence:.2f})")
    else:
        print(f"No VIN found{': ' + status.error if status.error else ''}")
    return 0 if status.last_result else 1


def _frame_orchestrator(context: ScannerContext, config: ScannerConfig, mode: Optional[str]) -> FrameOrchestrator:
    orchestrator = FrameOrchestrator.from_context(context, config)
    if mode:
        orchestrator.set_mode(mode)
    if orchestrator.status.mode == ScannerMode.MANUAL:
        raise ConfigurationError(
            "Manual mode takes typed input, not frames",
            config_key='scanner.default_mode',
            expected='barcode, text',
        )
    return orchestrator


def cmd_scan(args) -> int:
    config = _load_config(args)
    # Still images never need a camera
    config.barcode_engine = replace(config.barcode_engine, probe_cameras=False)

    image = cv2.imread(args.image, cv2.IMREAD_UNCHANGED)
    if image is None:
        print(f"Error: cannot read image {args.image}", file=sys.stderr)
        return 2

    frame = Frame.from_bgr(image)
    if not args.full_frame:
        frame = crop_roi(frame, config.scanner.roi_width_fraction, config.scanner.roi_height_fraction)

    context = ScannerContext(config)
    try:
        orchestrator = _frame_orchestrator(context, config, args.mode)
        orchestrator.submit_frame(frame)
        return _report(orchestrator, args.json)
    except ScannerError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2
    finally:
        context.terminate()


def cmd_camera(args) -> int:
    config = _load_config(args)
    capture = cv2.VideoCapture(args.device)
    if not capture.isOpened():
        print(f"Error: cannot open camera device {args.device}", file=sys.stderr)
        return 2

    context = ScannerContext(config)
    try:
        # Engines initialize lazily on the first frame of their mode
        orchestrator = _frame_orchestrator(context, config, args.mode)
        frames = 0
        while orchestrator.status.is_scanning:
            ok, image = capture.read()
            if not ok:
                logger.warning("Camera returned no frame")
                break
            frames += 1
            frame = crop_roi(Frame.from_bgr(image), config.scanner.roi_width_fraction, config.scanner.roi_height_fraction)
            orchestrator.submit_frame(frame)
            if args.max_frames and frames >= args.max_frames:
                break
        logger.info(f"Processed {frames} frame(s)")
        return _report(orchestrator, args.json)
    except (EngineInitError, CameraAccessError, ConfigurationError) as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130
    finally:
        capture.release()
        context.terminate()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='vin-scanner',
        description="Scan and validate Vehicle Identification Numbers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split('Examples:', 1)[1] if __doc__ else None,
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    subparsers = parser.add_subparsers(dest='command', required=True)

    validate = subparsers.add_parser('validate', help='Validate VIN strings')
    validate.add_argument('vins', nargs='+', help='VINs to validate')
    validate.add_argument('--json', action='store_true', help='JSON output')
    validate.set_defaults(func=cmd_validate)

    decode = subparsers.add_parser('decode', help='Decode VIN structure')
    decode.add_argument('vin', help='VIN to decode')
    decode.add_argument('--json', action='store_true', help='JSON output')
    decode.set_defaults(func=cmd_decode)

    modes = [ScannerMode.BARCODE.value, ScannerMode.TEXT.value]

    def add_runtime_options(sub):
        sub.add_argument('--mode', '-m', choices=modes,
                         help='Recognition path (default: scanner.default_mode)')
        sub.add_argument('--config', '-c', help='JSON or YAML config file')
        sub.add_argument('--json', action='store_true', help='JSON output')
        sub.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    scan = subparsers.add_parser('scan', help='Scan a single image file')
    scan.add_argument('image', help='Image path')
    scan.add_argument('--full-frame', action='store_true', help='Skip the region-of-interest crop')
    add_runtime_options(scan)
    scan.set_defaults(func=cmd_scan)

    camera = subparsers.add_parser('camera', help='Scan from a camera until a VIN is accepted')
    camera.add_argument('--device', '-d', type=int, default=0, help='OpenCV capture index (default: 0)')
    camera.add_argument('--max-frames', type=int, default=0, help='Stop after N frames (default: unlimited)')
    add_runtime_options(camera)
    camera.set_defaults(func=cmd_camera)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
