#!/usr/bin/env python3
"""Validate a Duskhaven location catalog before loading it into a world."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from packages.duskhaven_core.world.locations import validate_catalog


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate a Duskhaven location catalog JSON")
    parser.add_argument("catalog_path", type=Path, help="Path to location catalog JSON")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit machine-readable JSON output",
    )
    args = parser.parse_args()

    try:
        raw = json.loads(args.catalog_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raw = None
        errors, warnings, summary = [f"Could not read catalog: {exc}"], [], {}
    if raw is not None:
        errors, warnings, summary = validate_catalog(raw)

    payload = {
        "ok": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "summary": summary,
    }

    if args.json:
        print(json.dumps(payload, indent=2))
    else:
        if payload["ok"]:
            print("OK: location catalog validation passed")
        else:
            print("ERROR: location catalog validation failed")

        for warning in warnings:
            print(f"WARN: {warning}")
        for error in errors:
            print(f"ERR: {error}")

        if summary:
            print("Summary:")
            print(json.dumps(summary, indent=2))

    return 0 if payload["ok"] else 1


if __name__ == "__main__":
    raise SystemExit(main())
