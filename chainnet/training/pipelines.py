"""Config-driven network assembly and training runs."""

from __future__ import annotations

import json
from copy import deepcopy
from pathlib import Path
from typing import Dict, List, Mapping, Tuple

import numpy as np

from ..core.layer import Layer
from ..core.strategies import get_rule
from ..core.types import Array, PipelineResult, Shape
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.summary import write_summary
from .network import Network

_REQUIRED_SECTIONS = {"network", "data", "train"}

_PRESETS: Dict[str, Mapping[str, object]] = {
    "linear-identity": {
        "network": {
            "input_shape": [3, 8],
            "layers": [
                {"outputs": 4, "activation": "identity"},
                {"outputs": 2, "activation": "identity"},
            ],
            "loss": "L2",
            "update_rule": "sgd",
            "update_params": {"lr": 0.01},
            "seed": 0,
        },
        "data": {"name": "linear", "options": {"seed": 1}},
        "train": {"stop_tol": 1.0e-6, "max_iter": 5000, "quiet": False},
    },
    "xor-tanh": {
        "network": {
            "input_shape": [2, 4],
            "layers": [
                {"outputs": 4, "activation": "tanh"},
                {"outputs": 1, "activation": "sigmoid"},
            ],
            "loss": "L2",
            "update_rule": "momentum",
            "update_params": {"lr": 0.5, "beta": 0.9},
            "seed": 3,
        },
        "data": {"name": "xor"},
        "train": {"stop_tol": 1.0e-3, "max_iter": 5000, "quiet": False},
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None


def read_config_file(path: str | Path) -> Mapping[str, object]:
    path = Path(path)
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        import yaml

        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    return data


def _check_sections(config: Mapping[str, object], source: str) -> None:
    missing = _REQUIRED_SECTIONS - set(config)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise KeyError(f"{source} is missing required sections: {missing_str}")


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        found: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = read_config_file(file)
                _check_sections(data, f"Preset {file.name}")
                found[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = found
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    file_overrides = _file_presets()
    if name in file_overrides:
        return file_overrides[name]
    try:
        return deepcopy(_PRESETS[name])
    except KeyError:
        available = ", ".join(sorted(presets()))
        raise KeyError(f"Unknown preset {name!r}. Available presets: {available}") from None


def load_config(path: str | Path) -> Mapping[str, object]:
    data = read_config_file(path)
    _check_sections(data, f"Config {Path(path).name}")
    return data


def merge_config(base: Mapping[str, object], override: Mapping[str, object]) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_config(merged[key], value)  # type: ignore[arg-type]
        else:
            merged[key] = value
    return merged


def build_network(net_cfg: Mapping[str, object]) -> Network:
    """Assemble a :class:`Network` from the ``network`` config section."""

    rows, cols = net_cfg["input_shape"]  # type: ignore[misc]
    layer_specs = net_cfg.get("layers") or []
    if not layer_specs:
        raise ValueError("network config needs at least one layer")
    seed = int(net_cfg.get("seed", 0))
    rule = get_rule(str(net_cfg.get("update_rule", "sgd")))

    layers: List[Layer] = []
    shape = Shape(int(rows), int(cols))
    for idx, spec in enumerate(layer_specs):  # type: ignore[union-attr]
        outputs = int(spec["outputs"])
        layers.append(
            Layer(
                shape,
                outputs,
                spec.get("activation", "identity"),
                rule,
                seed=seed + idx,
            )
        )
        shape = Shape(outputs, shape.cols)

    network = Network.from_layers(layers, loss=str(net_cfg.get("loss", "L2")))
    params = net_cfg.get("update_params")
    if isinstance(params, Mapping):
        network.set_update_params(**params)
    elif isinstance(params, (list, tuple)):
        network.set_update_params(*params)
    elif params is not None:
        network.set_update_params(params)
    return network


def make_data(data_cfg: Mapping[str, object], network: Network) -> Tuple[Array, Array]:
    """Return ``(inputs, target)`` for the ``data`` config section."""

    if "inputs" in data_cfg and "target" in data_cfg:
        return (
            np.asarray(data_cfg["inputs"], dtype=np.float64),
            np.asarray(data_cfg["target"], dtype=np.float64),
        )
    name = data_cfg.get("name")
    options = dict(data_cfg.get("options") or {})  # type: ignore[arg-type]
    features, samples = network.input_shape
    if name == "linear":
        rng = np.random.default_rng(int(options.get("seed", 0)))
        inputs = rng.standard_normal((features, samples))
        true_weights = rng.standard_normal((network.num_outputs, features))
        return inputs, true_weights @ inputs
    if name == "xor":
        inputs = np.array([[0.0, 0.0, 1.0, 1.0], [0.0, 1.0, 0.0, 1.0]])
        target = np.array([[0.0, 1.0, 1.0, 0.0]])
        return inputs, target
    raise ValueError(f"Unsupported data source: {name!r}")


def run_pipeline(config: Mapping[str, object]) -> PipelineResult:
    _check_sections(config, "Config")
    network = build_network(config["network"])  # type: ignore[arg-type]
    inputs, target = make_data(config["data"], network)  # type: ignore[arg-type]
    network.set_inputs(inputs, override_input_shape=True)
    network.set_target(target)

    train_cfg = dict(config["train"])  # type: ignore[arg-type]
    run_dir = train_cfg.get("run_dir")
    callbacks: List[object] = []
    metrics_path = ""
    if run_dir:
        run_path = Path(str(run_dir))
        run_path.mkdir(parents=True, exist_ok=True)
        (run_path / "config.json").write_text(json.dumps(config, indent=2, sort_keys=True))
        seed = int(config["network"].get("seed", 0))  # type: ignore[union-attr]
        metrics_path = str(run_path / "metrics.jsonl")
        callbacks = [JsonlSink(metrics_path, seed=seed), CsvSink(run_path / "metrics.csv")]

    result = network.train(
        stop_tol=float(train_cfg.get("stop_tol", 1.0e-5)),
        max_iter=int(train_cfg.get("max_iter", 1000)),
        quiet=bool(train_cfg.get("quiet", False)),
        callbacks=callbacks,
    )

    summary_path = ""
    if run_dir:
        summary_path = write_summary(network.training_loss, Path(str(run_dir)) / "summary.json")
    return PipelineResult(
        iterations=result.iterations,
        final_loss=result.final_loss,
        state=result.state.value,
        metrics_path=metrics_path,
        summary_path=summary_path,
    )


__all__ = [
    "build_network",
    "load_config",
    "load_preset",
    "make_data",
    "merge_config",
    "presets",
    "read_config_file",
    "run_pipeline",
]
