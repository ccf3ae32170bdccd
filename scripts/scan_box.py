#!/usr/bin/env python3
"""CLI for scanning one box photo against the roster."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import cv2
import numpy as np
import yaml

from phonebox.attribution.reconcile import rows_to_frame, status_counts
from phonebox.identifiers import BoxSelector
from phonebox.io_utils import dump_json, ensure_dir, load_yaml, resolve_path, setup_logging
from phonebox.pipeline import ScanConfig, SlotScanner
from phonebox.recognition.baseline import BaselineStoreError, JsonBaselineStore
from phonebox.roster import load_roster
from phonebox.types import CropRect, Thresholds


LOGGER = logging.getLogger("scripts.scan_box")


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Detect phones in a box photo and join with the roster")
    parser.add_argument("image", type=Path, help="Photo of the storage box")
    parser.add_argument("roster", type=Path, help="Roster CSV or Excel workbook")
    parser.add_argument("--grade", type=int, default=None, help="Grade of the box (omit for standalone boxes)")
    parser.add_argument("--box", type=str, required=True, help="Box letter (A-H) or standalone code (SM2)")
    parser.add_argument(
        "--pipeline-config",
        type=Path,
        default=Path("configs/pipeline.yaml"),
        help="Pipeline configuration YAML",
    )
    parser.add_argument("--crop-top", type=float, default=None, help="Crop top %% (overrides config)")
    parser.add_argument("--crop-left", type=float, default=None, help="Crop left %% (overrides config)")
    parser.add_argument("--crop-right", type=float, default=None, help="Crop right %% (overrides config)")
    parser.add_argument("--crop-bottom", type=float, default=None, help="Crop bottom %% (overrides config)")
    parser.add_argument("--min-dark-ratio", type=float, default=None, help="Presence dark-ratio threshold")
    parser.add_argument("--min-saturation", type=float, default=None, help="Presence saturation threshold")
    parser.add_argument(
        "--baselines",
        type=Path,
        default=None,
        help="Baseline JSON store (defaults to baseline_path from config)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output CSV path (defaults to <image stem>-results.csv next to the image)",
    )
    parser.add_argument("--json", type=Path, default=None, help="Optional JSON dump of the result rows")
    return parser.parse_args(argv)


def load_image(path: Path) -> np.ndarray:
    image = cv2.imread(str(path))
    if image is None:
        raise FileNotFoundError(f"Unable to read image: {path}")
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def _load_config(path: Path) -> Dict[str, Any]:
    if not path.exists():
        LOGGER.warning("Pipeline config %s not found; using built-in defaults", path)
        return {}
    return load_yaml(path)


def _resolve_crop(args: argparse.Namespace, config: ScanConfig) -> CropRect:
    return CropRect(
        top=args.crop_top if args.crop_top is not None else config.crop.top,
        left=args.crop_left if args.crop_left is not None else config.crop.left,
        right=args.crop_right if args.crop_right is not None else config.crop.right,
        bottom=args.crop_bottom if args.crop_bottom is not None else config.crop.bottom,
    )


def _resolve_thresholds(args: argparse.Namespace, config: ScanConfig) -> Thresholds:
    return Thresholds(
        min_dark_ratio=(
            args.min_dark_ratio if args.min_dark_ratio is not None else config.thresholds.min_dark_ratio
        ),
        min_saturation=(
            args.min_saturation if args.min_saturation is not None else config.thresholds.min_saturation
        ),
    )


def _resolve_baseline_path(args: argparse.Namespace, pipeline_cfg: Dict[str, Any]) -> Path:
    if args.baselines is not None:
        return args.baselines
    return resolve_path(pipeline_cfg.get("baseline_path", "data/baselines.json"))


def main(argv: Optional[list] = None) -> int:
    args = parse_args(argv)
    setup_logging()

    try:
        pipeline_cfg = _load_config(args.pipeline_config)
        config = ScanConfig.from_dict(pipeline_cfg)
    except (OSError, yaml.YAMLError, TypeError, ValueError) as exc:
        LOGGER.error("Invalid pipeline config %s: %s", args.pipeline_config, exc)
        return 2
    crop = _resolve_crop(args, config)
    thresholds = _resolve_thresholds(args, config)
    box = BoxSelector(grade=args.grade, box_code=args.box)

    LOGGER.info(
        "Scan config: grid=%dx%d stride=%d crop=%s min_dark=%.2f min_sat=%.2f",
        config.rows,
        config.columns,
        config.sample_stride,
        crop,
        thresholds.min_dark_ratio,
        thresholds.min_saturation,
    )

    try:
        box.validate()
        crop.validate()
    except ValueError as exc:
        LOGGER.error("%s", exc)
        return 2

    try:
        roster = load_roster(args.roster)
    except (OSError, ValueError) as exc:
        LOGGER.error("Unable to load roster %s: %s", args.roster, exc)
        return 1
    try:
        image = load_image(args.image)
    except OSError as exc:
        LOGGER.error("%s", exc)
        return 1
    try:
        store = JsonBaselineStore(_resolve_baseline_path(args, pipeline_cfg))
        scanner = SlotScanner.from_config(roster, store, config)
    except BaselineStoreError as exc:
        LOGGER.error("%s", exc)
        return 1

    try:
        rows = scanner.scan(image, crop, box, thresholds)
    except BaselineStoreError as exc:
        LOGGER.error("%s", exc)
        return 1

    output_path = args.output or args.image.with_name(f"{args.image.stem}-results.csv")
    ensure_dir(output_path.parent)
    rows_to_frame(rows).to_csv(output_path, index=False)
    LOGGER.info("Wrote %d rows to %s", len(rows), output_path)

    if args.json is not None:
        dump_json(args.json, [row.to_record() for row in rows])
        LOGGER.info("Wrote JSON rows to %s", args.json)

    counts = status_counts(rows)
    LOGGER.info(
        "Box %s: turned in=%d missing=%d suspicious=%d unassigned=%d",
        box.label,
        counts["TURNED_IN"],
        counts["MISSING"],
        counts["SUSPICIOUS"],
        counts["UNASSIGNED"],
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
