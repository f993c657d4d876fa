"""CLI for the roof engine."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from roofengine.assembly.builder import solve_roof
from roofengine.exceptions import ConfigurationError
from roofengine.logging_config import setup_logging
from roofengine.merge.orchestrator import solve_rooms
from roofengine.models import RoofFailure
from roofengine.settings import Settings


def _options(settings: Settings, request: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    """Solve options: command line beats the request file, which beats the settings file."""
    roof = settings.roof
    options: Dict[str, Any] = {
        "default_pitch": request.get("defaultPitch", roof.default_pitch_deg),
        "overhang": request.get("overhang", roof.overhang_mm),
        "gable_overhang": request.get("gableOverhang", roof.gable_overhang_mm),
        "plate_height": request.get("plateHeight", roof.plate_height_mm),
        "min_edge_length": roof.min_edge_length_mm,
        "event_budget_factor": roof.event_budget_factor,
    }
    if args.pitch is not None:
        options["default_pitch"] = args.pitch
    if args.overhang is not None:
        options["overhang"] = args.overhang
    return options


def run(request: Dict[str, Any], settings: Settings, args: argparse.Namespace) -> Dict[str, Any]:
    options = _options(settings, request, args)

    if "rooms" in request:
        max_workers = args.workers if args.workers is not None else settings.roof.max_workers
        multi = solve_rooms(request["rooms"], max_workers=max_workers, **options)
        return {
            "result": multi.result.model_dump(by_alias=True),
            "summary": multi.result.summary(),
            "failures": [f.model_dump(by_alias=True) for f in multi.failures],
            "components": [c.model_dump(by_alias=True) for c in multi.components],
        }

    if "footprint" not in request:
        raise ConfigurationError("Request needs either 'footprint' or 'rooms'")
    outcome = solve_roof(request["footprint"], request.get("edgeDirectives"), **options)
    if isinstance(outcome, RoofFailure):
        return {"failures": [outcome.model_dump(by_alias=True)]}
    return {"result": outcome.model_dump(by_alias=True), "summary": outcome.summary(), "failures": []}


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Compute roof lines (eaves, ridges, hips, valleys) for building footprints")
    parser.add_argument("--input", type=Path, required=True, help="Request JSON with 'footprint' (+ 'edgeDirectives') or 'rooms'")
    parser.add_argument("--output", type=Path, help="Result JSON (default: stdout)")
    parser.add_argument("--config", type=Path, help="Settings YAML (default: ROOFENGINE_CONFIG or config/default.yaml)")
    parser.add_argument("--pitch", type=float, help="Default pitch in degrees")
    parser.add_argument("--overhang", type=float, help="Eave overhang in mm")
    parser.add_argument("--workers", type=int, help="Worker processes for independent roof components")
    parser.add_argument("--log-level", help="Log level (overrides settings)")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")

    args = parser.parse_args(argv)

    try:
        settings = Settings.load(args.config)
    except ConfigurationError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 2

    setup_logging(
        level=(args.log_level or settings.logging.level).upper(),
        json_format=args.json_logs or settings.logging.json_format,
        log_file=settings.logging.log_file,
    )

    try:
        request = json.loads(args.input.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.error(f"Cannot read request {args.input}: {exc}")
        return 2
    if not isinstance(request, dict):
        logger.error("Request must be a JSON object")
        return 2

    try:
        payload = run(request, settings, args)
    except ConfigurationError as exc:
        logger.error(exc.message)
        return 2

    text = json.dumps(payload, indent=2)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(text, encoding="utf-8")
        logger.info(f"Saved roof result to {args.output}")
    else:
        print(text)

    if payload["failures"]:
        logger.warning(f"{len(payload['failures'])} roof failure(s)")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
