"""
Microscopic reaction-diffusion driver.

Each step runs, in order: zeroth-order production, first-order reactions on
existing molecules, then diffusion of every molecule through the region
hierarchy. Molecules created during a step wait until the next one to move.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np

from . import utils
from .context import SimulationContext, context_from_config
from .diffusion import (
    DEFAULT_DIST_ERROR,
    DEFAULT_MAX_DEPTH,
    DiffusionState,
    validate_molecule,
)
from .geometry import point_in_boundary, uniform_point_volume
from .molecules import MoleculeList

###############################################################################
# Configuration
###############################################################################

MAX_PLACEMENT_TRIES = 10_000


@dataclass
class SimulatorParams:
    num_steps: int = 100
    seed: Optional[int] = None
    max_depth: int = DEFAULT_MAX_DEPTH
    dist_error: float = DEFAULT_DIST_ERROR
    verbose: bool = False


@dataclass
class SimulationEvent:
    """A discrete state change reported to observers."""

    step: int
    kind: str  # "zeroth", "reaction", "absorbed" or "transmit"
    region: int
    species: int
    reaction: Optional[int]  # global reaction id
    position: Optional[np.ndarray] = None


###############################################################################
# Driver
###############################################################################


class MicroSimulator:
    """
    Microscopic driver over a ``SimulationContext``.

    Molecules of each species live in one ``MoleculeList`` per microscopic
    region. Mesoscopic regions only keep counts of molecules that reached them.
    """

    def __init__(
        self,
        context: SimulationContext,
        params: Optional[SimulatorParams] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.context = context
        self.params = params or SimulatorParams()
        self.rng = rng if rng is not None else utils.make_rng(self.params.seed)
        tree = context.tree
        self.molecules: Dict[Tuple[int, int], MoleculeList] = {
            (r.handle, s): MoleculeList()
            for r in tree
            if r.micro
            for s in range(context.num_species)
        }
        self.meso_counts = np.zeros((len(tree), context.num_species), dtype=np.int64)
        self.events: List[SimulationEvent] = []
        self.diagnostics: Dict[str, int] = {
            "recursion_limit": 0,
            "reflections": 0,
            "transmissions": 0,
            "absorptions": 0,
            "reactions": 0,
        }
        self.step_index = 0

    # ----------------------------------------------------------------- access
    def _handles(self, region: int | str, species: int | str) -> Tuple[int, int]:
        if isinstance(region, str):
            region = self.context.tree.handle(region)
        return int(region), self.context.species_index(species)

    def positions(self, region: int | str, species: int | str) -> np.ndarray:
        key = self._handles(region, species)
        return self.molecules[key].positions.copy()

    def count(self, region: int | str, species: int | str) -> int:
        key = self._handles(region, species)
        if key in self.molecules:
            return len(self.molecules[key])
        return int(self.meso_counts[key])

    @property
    def time(self) -> float:
        return self.step_index * self.context.dt

    # ---------------------------------------------------------------- release
    def add_molecules(self, region: int | str, species: int | str, positions) -> None:
        key = self._handles(region, species)
        positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
        if key in self.molecules:
            self.molecules[key].add(positions)
        else:
            self.meso_counts[key] += len(positions)

    def _uniform_in_region(self, handle: int) -> np.ndarray:
        """Uniform point in a region, outside the volumes of its children."""
        tree = self.context.tree
        region = tree[handle]
        on_surface = region.is_surface and region.is_volume
        for _ in range(MAX_PLACEMENT_TRIES):
            point = uniform_point_volume(region.boundary, self.rng, surface=on_surface)
            if on_surface or not any(
                tree[c].is_volume and point_in_boundary(point, tree[c].boundary)
                for c in region.children
            ):
                return point
        raise RuntimeError(
            f"Could not place a molecule in region {region.label!r} after "
            f"{MAX_PLACEMENT_TRIES} tries"
        )

    def release_uniform(self, region: int | str, species: int | str, count: int) -> None:
        handle, s = self._handles(region, species)
        if (handle, s) not in self.molecules:
            self.meso_counts[handle, s] += count
            return
        points = [self._uniform_in_region(handle) for _ in range(count)]
        self.molecules[handle, s].add(points)

    # ------------------------------------------------------------------- step
    def _zeroth_order(self) -> None:
        ctx = self.context
        for region in ctx.tree:
            if not region.micro:
                continue
            table = ctx.table(region.handle)
            for idx, j in enumerate(table.zeroth):
                n = self.rng.poisson(table.rate_zeroth_micro[idx] * ctx.dt)
                for _ in range(n):
                    for product in table.products(j):
                        point = self._uniform_in_region(region.handle)
                        self.molecules[region.handle, int(product)].add(point, pending=True)
                    self.events.append(SimulationEvent(
                        self.step_index, "zeroth", region.handle, -1,
                        int(table.reaction_ids[j]),
                    ))

    def _first_order(self) -> None:
        ctx = self.context
        for (handle, species), mols in list(self.molecules.items()):
            table = ctx.table(handle)
            ids, cum = table.first_order(species)
            if ids.size == 0 or table.exclusive_reaction(species) is not None:
                continue
            active = np.flatnonzero(~mols.pending)
            if active.size == 0:
                continue
            choice = np.searchsorted(cum, self.rng.random(active.size), side="right")
            keep = np.ones(len(mols), dtype=bool)
            created: List[Tuple[int, np.ndarray]] = []
            for i, k in zip(active, choice):
                if k >= ids.size:
                    continue
                j = int(ids[k])
                keep[i] = False
                position = mols.positions[i].copy()
                for product in table.products(j):
                    created.append((int(product), position))
                self.diagnostics["reactions"] += 1
                self.events.append(SimulationEvent(
                    self.step_index, "reaction", handle, species,
                    int(table.reaction_ids[j]), position,
                ))
            mols.keep(keep)
            for product, position in created:
                self.molecules[handle, product].add(position, pending=True)

    def _diffuse(self) -> None:
        ctx = self.context
        tree = ctx.tree
        for (handle, species), mols in list(self.molecules.items()):
            if tree[handle].is_surface or tree.diffusion(handle, species) <= 0.0:
                continue
            keep = np.ones(len(mols), dtype=bool)
            moved: List[Tuple[int, np.ndarray]] = []
            for i in np.flatnonzero(~mols.pending):
                result = validate_molecule(
                    ctx, mols.positions[i], handle, species, self.rng,
                    max_depth=self.params.max_depth,
                    dist_error=self.params.dist_error,
                )
                self.diagnostics["reflections"] += sum(
                    1 for c in result.crossings if c.kind == DiffusionState.REFLECT
                )
                if result.state == DiffusionState.FAILED:
                    self.diagnostics["recursion_limit"] += 1
                if result.state == DiffusionState.ABSORBED:
                    keep[i] = False
                    self._absorb(result.region, species, result.reaction, result.position)
                elif result.region != handle:
                    keep[i] = False
                    moved.append((result.region, result.position))
                    self.diagnostics["transmissions"] += 1
                    if not tree[result.region].micro:
                        self.events.append(SimulationEvent(
                            self.step_index, "transmit", result.region, species,
                            None, result.position,
                        ))
                else:
                    mols.positions[i] = result.position
            mols.keep(keep)
            for region, position in moved:
                if (region, species) in self.molecules:
                    self.molecules[region, species].add(position, pending=True)
                else:
                    self.meso_counts[region, species] += 1

    def _absorb(self, surface: int, species: int, j: int, position: np.ndarray) -> None:
        table = self.context.table(surface)
        self.diagnostics["absorptions"] += 1
        self.events.append(SimulationEvent(
            self.step_index, "absorbed", surface, species,
            int(table.reaction_ids[j]), position,
        ))
        for product in table.products(j):
            key = (surface, int(product))
            if key in self.molecules:
                self.molecules[key].add(position, pending=True)
            else:
                self.meso_counts[key] += 1

    def step(self) -> None:
        self._zeroth_order()
        self._first_order()
        self._diffuse()
        for mols in self.molecules.values():
            mols.clear_pending()
        self.step_index += 1

    def run(self, num_steps: Optional[int] = None) -> None:
        """Run ``num_steps`` steps (default ``params.num_steps``)."""
        n = self.params.num_steps if num_steps is None else num_steps
        t_start = time.perf_counter()
        report = max(1, n // 10)
        for i in range(n):
            self.step()
            if self.params.verbose and (i + 1) % report == 0:
                total = sum(len(m) for m in self.molecules.values())
                elapsed = time.perf_counter() - t_start
                rate = (i + 1) / elapsed if elapsed > 0 else 0.0
                print(f"[micro] step {i + 1}/{n}, {total} molecules, {rate:.0f} steps/s")
        if self.params.verbose:
            elapsed = time.perf_counter() - t_start
            print(f"Simulation completed: {n} steps in {elapsed:.2f}s "
                  f"(t = {self.time:g}, diagnostics = {self.diagnostics})")

    # ---------------------------------------------------------------- results
    def result(self) -> utils.SimulationResult:
        tree = self.context.tree
        names = self.context.species
        positions = {
            (tree[h].label, names[s]): mols.positions.copy()
            for (h, s), mols in self.molecules.items()
        }
        meso = {
            (r.label, names[s]): int(self.meso_counts[r.handle, s])
            for r in tree
            if not r.micro
            for s in range(self.context.num_species)
        }
        meta = {
            "model": "micro",
            "dt": self.context.dt,
            "steps": self.step_index,
            "time": self.time,
            "seed": self.params.seed,
            "diagnostics": dict(self.diagnostics),
            "num_events": len(self.events),
        }
        return utils.SimulationResult(positions=positions, meso_counts=meso, meta=meta)


def _release(sim: MicroSimulator, spec: Mapping[str, Any]) -> None:
    count = int(spec.get("count", 1))
    if "position" in spec:
        point = np.asarray(spec["position"], dtype=np.float64)
        sim.add_molecules(spec["region"], spec["species"], np.tile(point, (count, 1)))
    else:
        sim.release_uniform(spec["region"], spec["species"], count)


def run_model(
    config: SimulationContext | Mapping[str, Any],
    params: SimulatorParams | dict | None = None,
) -> utils.SimulationResult:
    """
    Build a driver from a configuration, run it and return a SimulationResult.

    ``config`` is a context or a mapping for ``context_from_config``; a
    mapping may also list initial ``release`` entries (``region``,
    ``species``, ``count`` and optionally a fixed ``position``).
    """
    if params is None:
        params = SimulatorParams()
    elif isinstance(params, dict):
        params = SimulatorParams(**params)

    releases = []
    if isinstance(config, SimulationContext):
        context = config
    else:
        context = context_from_config(config)
        releases = list(config.get("release", []))

    sim = MicroSimulator(context, params)
    for spec in releases:
        _release(sim, spec)
    sim.run()
    return sim.result()


__all__ = [
    "SimulatorParams",
    "SimulationEvent",
    "MicroSimulator",
    "run_model",
]
