"""
Simulation context: the region tree, reactions and compiled tables in one place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence

import numpy as np

from .reactions import (
    ChemicalReaction,
    CompiledReactionTable,
    SurfaceReactionKind,
    compile_reactions,
)
from .region import RegionTree, region_tree_from_specs


@dataclass
class SimulationContext:
    tree: RegionTree
    reactions: List[ChemicalReaction]
    species: List[str]
    dt: float
    tables: List[CompiledReactionTable] = field(default_factory=list)

    @property
    def num_species(self) -> int:
        return len(self.species)

    def species_index(self, name: str | int) -> int:
        if isinstance(name, (int, np.integer)):
            return int(name)
        try:
            return self.species.index(name)
        except ValueError:
            raise KeyError(f"Unknown species {name!r}") from None

    def table(self, handle: int) -> CompiledReactionTable:
        return self.tables[handle]


def build_context(
    tree: RegionTree,
    reactions: Sequence[ChemicalReaction],
    species: Sequence[str],
    dt: float,
    *,
    clearance: float = 0.0,
) -> SimulationContext:
    """Validate the hierarchy and compile every region's reaction table."""
    if len(species) != tree.num_species:
        raise ValueError(
            f"Tree has {tree.num_species} species but {len(species)} names were given"
        )
    tree.validate(clearance)
    reactions = list(reactions)
    tables = compile_reactions(tree, reactions, dt)
    return SimulationContext(tree, reactions, list(species), float(dt), tables)


def _species_vector(value: Any, species: List[str], what: str) -> np.ndarray:
    """Accept either a full list or a {species name: value} mapping."""
    if isinstance(value, Mapping):
        out = np.zeros(len(species))
        for name, v in value.items():
            if name not in species:
                raise ValueError(f"{what} names unknown species {name!r}")
            out[species.index(name)] = v
        return out
    out = np.asarray(value, dtype=np.float64)
    if out.shape != (len(species),):
        raise ValueError(f"{what} needs {len(species)} entries, got {out.size}")
    return out


def _reaction_from_config(spec: Mapping[str, Any], species: List[str], index: int) -> ChemicalReaction:
    what = f"Reaction {index}"
    kind = spec.get("surface_kind", "normal")
    return ChemicalReaction(
        reactants=_species_vector(spec.get("reactants", {}), species, what),
        products=_species_vector(spec.get("products", {}), species, what),
        k=float(spec["k"]),
        surface=bool(spec.get("surface", False)),
        surface_kind=SurfaceReactionKind[str(kind).upper()],
        everywhere=bool(spec.get("everywhere", True)),
        exceptions=tuple(spec.get("exceptions", ())),
        label=str(spec.get("label", index)),
    )


def context_from_config(config: Mapping[str, Any], *, clearance: Optional[float] = None) -> SimulationContext:
    """
    Build a context from a plain mapping (e.g. loaded with ``utils.load_params``).

    Expected keys: ``species`` (list of names), ``dt``, ``regions`` and
    ``reactions``. Region ``diffusion`` and reaction ``reactants``/``products``
    may be given as lists or as ``{species name: value}`` mappings; surface
    regions without ``diffusion`` inherit their parent's.
    """
    species = [str(s) for s in config["species"]]
    region_specs = []
    for spec in config["regions"]:
        spec = dict(spec)
        if "diffusion" in spec and spec["diffusion"] is not None:
            spec["diffusion"] = _species_vector(
                spec["diffusion"], species, f"Region {spec.get('label')!r}"
            )
        region_specs.append(spec)
    tree = region_tree_from_specs(len(species), region_specs)
    reactions = [
        _reaction_from_config(spec, species, i)
        for i, spec in enumerate(config.get("reactions", []))
    ]
    if clearance is None:
        clearance = float(config.get("clearance", 0.0))
    return build_context(tree, reactions, species, float(config["dt"]), clearance=clearance)


__all__ = ["SimulationContext", "build_context", "context_from_config"]
