"""CLI for a single planning run against the configured store."""

import argparse
import json
import sys
from datetime import datetime
from typing import Optional

from backend.config import load_config
from backend.core.logging import setup_logging
from backend.store import SolarStore
from executor.home_assistant import HAClient, load_home_assistant_config
from planner.pipeline import PlannerPipeline


def _parse_now(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError("--now must be ISO formatted (YYYY-MM-DDTHH:MM).")


def _read_soc(config) -> Optional[float]:
    ha_config = load_home_assistant_config(config)
    if not ha_config.enabled:
        return None
    client = HAClient(ha_config.url, ha_config.token, ha_config.timeout)
    return client.get_float(ha_config.battery_soc_entity_id)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Plan battery strategies for the coming hours.")
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml.")
    parser.add_argument(
        "--soc",
        type=float,
        help="Current battery level in percent. Read from Home Assistant when omitted.",
    )
    parser.add_argument("--now", type=_parse_now, help="Plan as if it was this time (UTC).")
    parser.add_argument("--json", action="store_true", help="Print the plan as JSON.")
    return parser


def main(argv=None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    store = SolarStore(config["database"]["path"])
    setup_logging(config)

    try:
        pipeline = PlannerPipeline(config, store)
    except ValueError as exc:
        print(f"[planner] {exc}", file=sys.stderr)
        return 2

    battery_level = args.soc
    if battery_level is None:
        battery_level = _read_soc(config)
        if battery_level is None:
            print(
                "[planner] No --soc given and no battery level could be read from Home Assistant.",
                file=sys.stderr,
            )
            return 2
        print(f"[planner] Battery level from Home Assistant: {battery_level:.1f}%")

    result = pipeline.run(now=args.now, battery_level=battery_level)

    if args.json:
        payload = {
            "status": result.status,
            "start": result.start.iso_string() if result.start else None,
            "cost": result.cost,
            "strategies": list(result.strategies),
            "rows_saved": result.rows_saved,
        }
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(f"[planner] Status: {result.status}")
        if result.schedule is not None:
            schedule = result.schedule.copy()
            schedule.index = schedule.index.tz_convert(config.get("timezone", "Europe/Stockholm"))
            print(schedule.to_string())
            cost = "n/a" if result.cost is None else f"{result.cost:.2f} SEK"
            print(f"[planner] Total cost: {cost}")

    return 0 if result.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
