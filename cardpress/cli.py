"""
cli.py

Responsibility: CLI entrypoint for cardpress.

Commands:
- `render`: personalize the template locally and write the HTML (no GitHub)
- `publish`: personalize and publish to a new branch, print the result as JSON

Both read field values from a YAML or JSON file holding a mapping of
field id -> value. This module orchestrates; the work lives in
`fields.py`, `renderer.py`, `publisher.py` and `service.py`.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import yaml

from cardpress.config import ConfigurationError, load_config
from cardpress.fields import normalize_fields
from cardpress.publisher import UpstreamFatalError
from cardpress.renderer import TemplateLoadError, apply_fields, load_template
from cardpress.service import PreviewService, ValidationError

logger = logging.getLogger(__name__)

EXIT_ERROR = 1
EXIT_USAGE = 2


class CLIError(RuntimeError):
    pass


def _load_fields_file(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise CLIError(f"Fields file does not exist: {p}")
    try:
        # BaseLoader keeps scalars as written ("5551234", "0101"), never int/bool.
        data = yaml.load(p.read_text(encoding="utf-8"), Loader=yaml.BaseLoader) or {}
    except yaml.YAMLError as e:
        raise CLIError(f"Fields file is not valid YAML/JSON: {p}") from e
    if not isinstance(data, dict):
        raise CLIError("Fields file must be a mapping/object at the top level.")
    return data


def render_cmd(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    values = normalize_fields(_load_fields_file(args.fields_path))
    if not values:
        print("No valid fields provided.", file=sys.stderr)
        return EXIT_USAGE

    template = load_template(args.template or config.template_path)
    result = apply_fields(template, values)

    if args.output:
        out = Path(args.output)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(result.html, encoding="utf-8", newline="\n")
        logger.info("Wrote %s (%d fields applied).", out, len(result.applied))
    else:
        sys.stdout.write(result.html)
    return 0


def publish_cmd(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    body: dict[str, Any] = {"fields": _load_fields_file(args.fields_path)}
    if args.message is not None:
        body["commitMessage"] = args.message

    try:
        result = PreviewService(config).publish(body)
    except ValidationError as e:
        print(str(e), file=sys.stderr)
        return EXIT_USAGE

    print(json.dumps(result.to_dict(), indent=2))
    return 0


def _build_parser() -> argparse.ArgumentParser:
    # Options shared by every subcommand; they go after the subcommand name.
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=None, help="YAML config file (environment variables override it)")
    common.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    p = argparse.ArgumentParser(prog="cardpress", description="Personalize the business card template and publish it")
    sub = p.add_subparsers(dest="command", required=True)

    r = sub.add_parser("render", parents=[common], help="Render the personalized card locally")
    r.add_argument("fields_path", help="YAML/JSON file with field values")
    r.add_argument("--output", "-o", default=None, help="Write HTML here instead of stdout")
    r.add_argument("--template", default=None, help="Template path (overrides config)")
    r.set_defaults(func=render_cmd)

    b = sub.add_parser("publish", parents=[common], help="Render and publish the card to a new GitHub branch")
    b.add_argument("fields_path", help="YAML/JSON file with field values")
    b.add_argument("--message", "-m", default=None, help="Commit message (default: timestamped)")
    b.set_defaults(func=publish_cmd)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        return int(args.func(args))
    except (CLIError, ConfigurationError, TemplateLoadError, UpstreamFatalError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
