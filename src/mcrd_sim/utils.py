# src/mcrd_sim/utils.py
from __future__ import annotations

import json
import os
import time
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import numpy as np

Key = Tuple[str, str]  # (region label, species name)

_POSITIONS = "positions"
_COUNTS = "counts"
_SEP = "|"


@dataclass
class SimulationResult:
    """Final state of a run: molecule positions, mesoscopic counts and metadata."""

    positions: Dict[Key, np.ndarray] = field(default_factory=dict)
    meso_counts: Dict[Key, int] = field(default_factory=dict)
    meta: Optional[Dict[str, Any]] = None

    def ensure_meta(self) -> Dict[str, Any]:
        if self.meta is None:
            self.meta = {}
        return self.meta

    def total(self, species: str) -> int:
        """Molecules of one species across every region, micro and meso."""
        n = sum(len(p) for (_, s), p in self.positions.items() if s == species)
        return n + sum(c for (_, s), c in self.meso_counts.items() if s == species)


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """The single random stream a run draws from."""
    return np.random.default_rng(seed)


def now_str() -> str:
    return time.strftime("%Y%m%d-%H%M%S")


def _encode(prefix: str, key: Key) -> str:
    region, species = key
    if _SEP in region or _SEP in species:
        raise ValueError(f"Region and species names may not contain {_SEP!r}: {key}")
    return _SEP.join((prefix, region, species))


def save_simulation_result(
    path: str | os.PathLike[str], result: SimulationResult, *, overwrite: bool = True
) -> None:
    """Serialize a SimulationResult to a compressed .npz."""
    out_dir = Path(path).parent
    out_dir.mkdir(parents=True, exist_ok=True)
    out: Dict[str, Any] = {}
    for key, positions in result.positions.items():
        out[_encode(_POSITIONS, key)] = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
    for key, count in result.meso_counts.items():
        out[_encode(_COUNTS, key)] = np.int64(count)

    # Arrays in the metadata go to the top level so they load without pickle
    meta = result.meta or {}
    meta_clean = {}
    for key, value in meta.items():
        if isinstance(value, np.ndarray):
            out[key] = value
        else:
            meta_clean[key] = value
    out["meta"] = meta_clean

    if not overwrite and Path(path).exists():
        raise FileExistsError(f"{path} already exists")
    np.savez_compressed(path, **out)


def load_simulation_result(path: str | os.PathLike[str]) -> SimulationResult:
    """Load a .npz written by ``save_simulation_result``."""
    result = SimulationResult(meta={})
    with np.load(path, allow_pickle=True) as data:
        for name in data.files:
            parts = name.split(_SEP)
            if len(parts) == 3 and parts[0] == _POSITIONS:
                result.positions[(parts[1], parts[2])] = data[name].astype(float)
            elif len(parts) == 3 and parts[0] == _COUNTS:
                result.meso_counts[(parts[1], parts[2])] = int(data[name])
            elif name == "meta":
                result.meta.update(data[name].item())
            else:
                result.meta[name] = data[name]
    return result


def load_params(path: str | os.PathLike[str]) -> Dict[str, Any]:
    """
    Load a simulation configuration from JSON or TOML.
    """
    path = str(path)
    with open(path, "rb") as fh:
        data = fh.read()
    suffix = Path(path).suffix.lower()
    if suffix in {".json", ""}:
        return json.loads(data.decode("utf-8"))
    if suffix in {".toml", ".tml"}:
        return tomllib.loads(data.decode("utf-8"))
    raise ValueError(f"Unsupported parameter file format: {suffix}")


__all__ = [
    "SimulationResult",
    "make_rng",
    "now_str",
    "save_simulation_result",
    "load_simulation_result",
    "load_params",
]
