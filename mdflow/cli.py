from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import yaml

from .builder import build_header_mapper
from .config import load_settings, load_validation_presets
from .converter import convert_paste
from .detect import detect_input_type
from .errors import ConfigError, MdflowError, UnknownTemplateError
from .render import get_template_names, resolve_template
from .validation import ValidationRules, rules_from_mapping

LOGGER = logging.getLogger("mdflow")

STDIN_NAME = "-"


def configure_logging(verbosity: int) -> None:
    level = logging.DEBUG if verbosity > 0 else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(message)s")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="mdflow",
        description="Convert pasted tables and markdown notes into structured MDFlow markdown.",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="count", default=0, help="Enable debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    convert = sub.add_parser("convert", parents=[common], help="Convert files (or '-' for stdin) to MDFlow markdown.")
    convert.add_argument("inputs", nargs="+", help="Input files; '-' reads standard input.")
    convert.add_argument(
        "--template",
        default="",
        help="Output template (default from MDFLOW_DEFAULT_TEMPLATE, else 'spec').",
    )
    rules = convert.add_mutually_exclusive_group()
    rules.add_argument("--preset", help="Name of a validation preset to apply.")
    rules.add_argument("--rules", type=Path, help="YAML/JSON file with a single validation rule set.")
    convert.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Write one .md per input here instead of printing to stdout.",
    )

    detect = sub.add_parser("detect", parents=[common], help="Report whether inputs look like tables or markdown.")
    detect.add_argument("inputs", nargs="+", help="Input files; '-' reads standard input.")

    sub.add_parser("templates", parents=[common], help="List available output templates.")
    return parser.parse_args(argv)


def read_input(name: str) -> Tuple[str, str]:
    """Return (label, content) for a path or '-'."""

    if name == STDIN_NAME:
        return "stdin", sys.stdin.read()
    path = Path(name)
    return path.stem, path.read_text(encoding="utf-8")


def load_rules(args: argparse.Namespace, presets_path: Optional[Path]) -> Optional[ValidationRules]:
    if args.rules is not None:
        with args.rules.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle) or {}
        if not isinstance(payload, dict):
            raise ConfigError(f"Expected a mapping of rules in {args.rules}")
        return rules_from_mapping(payload)
    if args.preset:
        return load_validation_presets(presets_path).get(args.preset)
    return None


def run_convert(args: argparse.Namespace) -> int:
    settings = load_settings()
    try:
        template = resolve_template(args.template or settings.default_template)
        rules = load_rules(args, settings.presets_path)
        mapper = build_header_mapper(settings)
    except (ConfigError, UnknownTemplateError, OSError) as e:
        LOGGER.error(str(e))
        return 2

    if args.output_dir is not None:
        args.output_dir.mkdir(parents=True, exist_ok=True)

    failures = 0
    outputs: List[str] = []
    for name in args.inputs:
        try:
            label, content = read_input(name)
        except OSError as e:
            LOGGER.error(f"Failed to read {name}: {e}")
            failures += 1
            continue

        try:
            result = convert_paste(content, template, rules=rules, settings=settings, mapper=mapper)
        except MdflowError as e:
            LOGGER.error(f"{name}: {e}")
            failures += 1
            continue

        for warning in result.warnings:
            LOGGER.warning(f"{name}: {warning}")
        LOGGER.info(
            f"{name}: {result.meta['input_type']} ({result.meta['confidence']}), "
            f"{result.meta.get('total_rows', result.meta.get('sections', 0))} item(s)"
        )

        if args.output_dir is not None:
            out_path = args.output_dir / f"{label}.md"
            out_path.write_text(result.mdflow, encoding="utf-8")
            LOGGER.info(f"Wrote {out_path}")
        else:
            outputs.append(result.mdflow)

    if outputs:
        sys.stdout.write("\n".join(outputs))
    return 1 if failures else 0


def run_detect(args: argparse.Namespace) -> int:
    settings = load_settings()
    failures = 0
    for name in args.inputs:
        try:
            _, content = read_input(name)
        except OSError as e:
            LOGGER.error(f"Failed to read {name}: {e}")
            failures += 1
            continue
        analysis = detect_input_type(content, settings.table_line_ratio)
        print(f"{name}\t{analysis.type.value}\t{analysis.confidence}\t{analysis.reason}")
    return 1 if failures else 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    if args.command == "templates":
        for name in get_template_names():
            print(name)
        return 0
    if args.command == "detect":
        return run_detect(args)
    return run_convert(args)


if __name__ == "__main__":
    sys.exit(main())
