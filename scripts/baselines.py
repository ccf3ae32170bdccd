#!/usr/bin/env python3
"""CLI for exporting and importing learned slot color baselines."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import yaml

from phonebox.io_utils import dump_json, load_json, load_yaml, resolve_path, setup_logging
from phonebox.recognition.baseline import (
    BaselineImportError,
    BaselineStoreError,
    JsonBaselineStore,
    merge_imported_baselines,
    profiles_to_records,
)


LOGGER = logging.getLogger("scripts.baselines")


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Export or import learned phone color baselines")
    parser.add_argument(
        "--pipeline-config",
        type=Path,
        default=Path("configs/pipeline.yaml"),
        help="Pipeline configuration YAML (for baseline_path)",
    )
    parser.add_argument("--baselines", type=Path, default=None, help="Baseline JSON store")
    sub = parser.add_subparsers(dest="command", required=True)

    export_p = sub.add_parser("export", help="Write all baselines to a JSON file")
    export_p.add_argument("output", type=Path)

    import_p = sub.add_parser("import", help="Merge baselines from a JSON file, overwriting matches")
    import_p.add_argument("input", type=Path)
    return parser.parse_args(argv)


def _resolve_store(args: argparse.Namespace) -> JsonBaselineStore:
    if args.baselines is not None:
        return JsonBaselineStore(args.baselines)
    cfg = load_yaml(args.pipeline_config) if args.pipeline_config.exists() else {}
    return JsonBaselineStore(resolve_path(cfg.get("baseline_path", "data/baselines.json")))


def main(argv: Optional[list] = None) -> int:
    args = parse_args(argv)
    setup_logging()

    try:
        store = _resolve_store(args)
    except (OSError, yaml.YAMLError) as exc:
        LOGGER.error("Invalid pipeline config %s: %s", args.pipeline_config, exc)
        return 2
    try:
        baselines = store.load()
    except BaselineStoreError as exc:
        LOGGER.error("%s", exc)
        return 1

    if args.command == "export":
        try:
            dump_json(args.output, profiles_to_records(baselines))
        except OSError as exc:
            LOGGER.error("Unable to write export %s: %s", args.output, exc)
            return 1
        LOGGER.info("Exported %d baseline(s) to %s", len(baselines), args.output)
        return 0

    try:
        payload = load_json(args.input)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        LOGGER.error("Unable to read baseline import %s: %s", args.input, exc)
        return 1
    try:
        merged = merge_imported_baselines(baselines, payload)
    except BaselineImportError as exc:
        LOGGER.error("Import rejected, baselines unchanged: %s", exc)
        return 1
    try:
        store.save(merged)
    except BaselineStoreError as exc:
        LOGGER.error("%s", exc)
        return 1
    LOGGER.info("Baseline store %s now holds %d entries", store.path, len(merged))
    return 0


if __name__ == "__main__":
    sys.exit(main())
