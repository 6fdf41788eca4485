"""Command line entry point for chainnet training runs."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Iterable

from chainnet.training import pipelines


def _format_result(result) -> str:
    payload = {
        "iterations": result.iterations,
        "final_loss": result.final_loss,
        "state": result.state,
    }
    if result.metrics_path:
        payload["metrics"] = result.metrics_path
    if result.summary_path:
        payload["summary"] = result.summary_path
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="linear-identity",
        help="Preset configuration to execute",
    )
    parser.add_argument(
        "--config", type=Path, help="Optional JSON/YAML config override"
    )
    parser.add_argument("--max-iter", type=int, help="Override train.max_iter")
    parser.add_argument("--stop-tol", type=float, help="Override train.stop_tol")
    parser.add_argument("--seed", type=int, help="Override network.seed")
    parser.add_argument("--run-dir", help="Directory for metrics and summary output")
    parser.add_argument(
        "--quiet", action="store_true", help="Suppress the max-iteration warning"
    )
    parser.add_argument(
        "--summary", action="store_true", help="Print the network summary before training"
    )
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    return parser.parse_args(argv)


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    config = dict(pipelines.load_preset(args.preset))
    if args.config:
        override = pipelines.read_config_file(args.config)
        if {"network", "data", "train"} <= set(override.keys()):
            config = json.loads(json.dumps(override))
        else:
            config = pipelines.merge_config(config, override)

    train_cfg = dict(config.get("train", {}))
    if args.max_iter is not None:
        train_cfg["max_iter"] = int(args.max_iter)
    if args.stop_tol is not None:
        train_cfg["stop_tol"] = float(args.stop_tol)
    if args.run_dir:
        train_cfg["run_dir"] = args.run_dir
    if args.quiet:
        train_cfg["quiet"] = True
    config["train"] = train_cfg
    if args.seed is not None:
        config["network"] = {**config["network"], "seed": int(args.seed)}

    if args.summary:
        print(pipelines.build_network(config["network"]).summary())

    result = pipelines.run_pipeline(config)
    print(_format_result(result))


if __name__ == "__main__":  # pragma: no cover
    main()
