"""Command-line interface for scanning bill photos.

Provides subcommands to scan one photo, check photo quality, and scan a
folder of photos into a JSON file.
"""

import argparse
import json
import sys
import time
from pathlib import Path

from billscan.errors import BillScanError
from billscan.ocr.bill_scanner import BillScanner, ScanMode
from billscan.utils.config import load_config
from billscan.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

_SUPPORTED_EXTENSIONS = ("*.png", "*.jpg", "*.jpeg", "*.tiff", "*.tif")


def _find_images(input_dir: Path) -> list[Path]:
    """Find all supported image files in a directory, sorted by name."""
    files: list[Path] = []
    for ext in _SUPPORTED_EXTENSIONS:
        files.extend(input_dir.glob(ext))
        files.extend(input_dir.glob(ext.upper()))
    return sorted(set(files))


def _build_scanner(config_path: Path | None, template: str | None) -> BillScanner:
    config = load_config(config_path)
    if template:
        config.extraction.template = template
    setup_logging(config.log_level)
    return BillScanner(config)


def scan_file(
    scanner: BillScanner,
    file_path: Path,
    mode: ScanMode = ScanMode.QUICK,
    passes: int | None = None,
) -> dict[str, object]:
    """Scan one photo and return a JSON-ready result dictionary."""
    start_time = time.time()
    result = scanner.scan(file_path.read_bytes(), mode=mode, pass_count=passes)
    payload: dict[str, object] = {"filename": file_path.name}
    payload.update(result.to_dict())
    payload["processing_time_s"] = round(time.time() - start_time, 2)
    return payload


def scan_folder(
    scanner: BillScanner,
    input_dir: Path,
    output_path: Path,
    mode: ScanMode = ScanMode.QUICK,
    passes: int | None = None,
    verbose: bool = False,
) -> dict[str, int]:
    """Scan every photo in a folder and write the results as JSON.

    Files that fail are recorded with their error and do not stop the run.

    Returns:
        Summary dict with total, successful and failed counts.
    """
    files = _find_images(input_dir)
    if not files:
        logger.warning("No images found in %s", input_dir)
        return {"total": 0, "successful": 0, "failed": 0}

    logger.info("Found %d images to scan", len(files))
    results: list[dict[str, object]] = []
    failed = 0

    for i, file_path in enumerate(files, 1):
        if verbose:
            print(f"Scanning [{i}/{len(files)}]: {file_path.name}")
        try:
            results.append(scan_file(scanner, file_path, mode, passes))
        except BillScanError as exc:
            logger.error("Failed to scan %s: %s", file_path.name, exc)
            results.append({"filename": file_path.name, "error": str(exc)})
            failed += 1

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(results, indent=2))
    logger.info("Results written to %s", output_path)

    summary = {"total": len(files), "successful": len(files) - failed, "failed": failed}
    _print_summary(summary, output_path)
    return summary


def _print_summary(summary: dict[str, int], output_path: Path) -> None:
    print(f"\n{'=' * 50}")
    print("Batch Scan Complete")
    print(f"{'=' * 50}")
    print(f"Total:      {summary['total']}")
    print(f"Successful: {summary['successful']}")
    print(f"Failed:     {summary['failed']}")
    print(f"Output:     {output_path}")


def _emit(payload: object, output: Path | None) -> None:
    text = json.dumps(payload, indent=2)
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text)
        print(f"Output written to {output}")
    else:
        print(text)


def _add_scan_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-m",
        "--mode",
        choices=[m.value for m in ScanMode],
        default=ScanMode.QUICK.value,
        help="quick = one OCR pass, full = merged multi-pass scan (default: quick)",
    )
    parser.add_argument(
        "-p", "--passes", type=int, help="Number of passes for a full scan"
    )
    parser.add_argument(
        "--template", help="Extraction template name, or 'auto' to match one per bill"
    )


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="Textile bill scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-c", "--config", type=Path, help="YAML configuration file")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    scan_parser = subparsers.add_parser("scan", help="Scan a single bill photo")
    scan_parser.add_argument("file", type=Path, help="Image file to scan")
    _add_scan_options(scan_parser)
    scan_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    quality_parser = subparsers.add_parser("quality", help="Check photo quality")
    quality_parser.add_argument("file", type=Path, help="Image file to check")

    batch_parser = subparsers.add_parser("batch", help="Scan a folder of bill photos")
    batch_parser.add_argument("input_dir", type=Path, help="Directory with images")
    batch_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("results.json"),
        help="Output JSON file (default: results.json)",
    )
    _add_scan_options(batch_parser)
    batch_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Verbose output"
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    scanner = _build_scanner(args.config, getattr(args, "template", None))

    try:
        if args.command == "batch":
            if not args.input_dir.is_dir():
                print(f"Error: {args.input_dir} is not a directory", file=sys.stderr)
                sys.exit(1)
            scan_folder(
                scanner,
                args.input_dir,
                args.output,
                ScanMode(args.mode),
                args.passes,
                args.verbose,
            )
            return

        if not args.file.exists():
            print(f"Error: {args.file} does not exist", file=sys.stderr)
            sys.exit(1)

        if args.command == "quality":
            report = scanner.analyze_quality(args.file.read_bytes())
            _emit(report.to_dict(), None)
        else:
            result = scan_file(scanner, args.file, ScanMode(args.mode), args.passes)
            _emit(result, args.output)
    except BillScanError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
