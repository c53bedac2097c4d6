"""
Reaction compiler.

Turns the abstract reaction list into one ``CompiledReactionTable`` per region:
which reactions apply there, their region-scaled rates, and for every species
the cumulative probability table over its competing first-order reactions.
Ragged per-reaction data (products, per-species reaction lists) is stored as
flat arrays with offset tables.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .errors import InconsistentReactionDefinition
from .region import Region, RegionTree, SurfaceKind


class SurfaceReactionKind(IntEnum):
    NORMAL = 0
    ABSORBING = 1
    RECEPTOR = 2
    MEMBRANE = 3


@dataclass
class ChemicalReaction:
    reactants: Sequence[int]
    products: Sequence[int]
    k: float
    surface: bool = False
    surface_kind: SurfaceReactionKind = SurfaceReactionKind.NORMAL
    everywhere: bool = True
    exceptions: Sequence[str] = ()
    label: str = ""

    def __post_init__(self) -> None:
        for name in ("reactants", "products"):
            counts = np.asarray(getattr(self, name), dtype=np.float64)
            if np.any(counts != np.floor(counts)):
                raise InconsistentReactionDefinition(
                    f"Reaction {self.label!r} needs whole-number {name[:-1]} counts, "
                    f"got {counts.tolist()}"
                )
        self.reactants = np.asarray(self.reactants, dtype=np.int64)
        self.products = np.asarray(self.products, dtype=np.int64)
        self.surface_kind = SurfaceReactionKind(self.surface_kind)
        self.exceptions = tuple(self.exceptions)
        if self.reactants.shape != self.products.shape:
            raise InconsistentReactionDefinition(
                f"Reaction {self.label!r} has {self.reactants.size} reactant counts "
                f"but {self.products.size} product counts"
            )
        if np.any(self.reactants < 0) or np.any(self.products < 0):
            raise InconsistentReactionDefinition(
                f"Reaction {self.label!r} has negative reactant or product counts"
            )
        if not self.k >= 0.0:
            raise InconsistentReactionDefinition(
                f"Reaction {self.label!r} needs a non-negative rate, got {self.k}"
            )
        if not self.surface and self.surface_kind != SurfaceReactionKind.NORMAL:
            raise InconsistentReactionDefinition(
                f"Reaction {self.label!r} has surface type {self.surface_kind.name} "
                "but is not a surface reaction"
            )

    @property
    def order(self) -> int:
        return int(self.reactants.sum())

    def applies_to(self, region: Region) -> bool:
        """Default placement, toggled once for every time the region is listed as an exception."""
        applies = self.everywhere and (self.surface == region.is_surface)
        if region.label:
            flips = sum(1 for label in self.exceptions if label and label == region.label)
            applies ^= flips % 2 == 1
        return applies


@dataclass
class CompiledReactionTable:
    """Reactions of one region, indexed locally 0..num_reactions-1."""

    region: int
    num_species: int
    reaction_ids: np.ndarray
    order: np.ndarray
    rate: np.ndarray
    surface_kinds: np.ndarray
    zeroth: np.ndarray
    rate_zeroth_micro: np.ndarray
    first: np.ndarray
    second: np.ndarray
    mol_change: np.ndarray
    update_prop: np.ndarray
    product_ids: np.ndarray
    product_offsets: np.ndarray
    uni_reactant: np.ndarray
    bi_reactants: np.ndarray
    first_offsets: np.ndarray
    first_rxn_ids: np.ndarray
    uni_cum_prob: np.ndarray
    uni_relative_rate: np.ndarray
    uni_sum_rate: np.ndarray
    no_reaction_prob: np.ndarray

    @property
    def num_reactions(self) -> int:
        return int(self.reaction_ids.size)

    def products(self, j: int) -> np.ndarray:
        return self.product_ids[self.product_offsets[j] : self.product_offsets[j + 1]]

    def first_order(self, species: int) -> Tuple[np.ndarray, np.ndarray]:
        """Competing first-order reactions of a species and their cumulative probabilities."""
        lo, hi = self.first_offsets[species], self.first_offsets[species + 1]
        return self.first_rxn_ids[lo:hi], self.uni_cum_prob[lo:hi]

    def exclusive_reaction(self, species: int) -> Optional[int]:
        """The single non-normal first-order reaction of a species, if it has one."""
        ids, _ = self.first_order(species)
        if ids.size == 1 and self.surface_kinds[ids[0]] != SurfaceReactionKind.NORMAL:
            return int(ids[0])
        return None


def _scaled_rate(k: float, order: int, sub_size: float, dimension: int) -> float:
    scale = sub_size ** dimension
    if order == 0:
        return k * scale
    return k / scale


def _compile_region(
    tree: RegionTree,
    handle: int,
    reactions: Sequence[ChemicalReaction],
    dt: float,
) -> CompiledReactionTable:
    region = tree[handle]
    n_species = tree.num_species
    dimension = tree.dimension(handle)

    local = [i for i, rxn in enumerate(reactions) if rxn.applies_to(region)]
    n_rxn = len(local)

    order = np.zeros(n_rxn, dtype=np.int64)
    rate = np.zeros(n_rxn)
    surface_kinds = np.zeros(n_rxn, dtype=np.int64)
    mol_change = np.zeros((n_rxn, n_species), dtype=np.int64)
    update_prop = np.zeros((n_rxn, n_species), dtype=bool)
    uni_reactant = np.full(n_rxn, -1, dtype=np.int64)
    bi_reactants = np.full((n_rxn, 2), -1, dtype=np.int64)
    product_offsets = np.zeros(n_rxn + 1, dtype=np.int64)
    products: List[int] = []
    zeroth: List[int] = []
    zeroth_micro: List[float] = []
    first: List[int] = []
    second: List[int] = []

    for j, rxn_id in enumerate(local):
        rxn = reactions[rxn_id]
        if rxn.reactants.size != n_species:
            raise InconsistentReactionDefinition(
                f"Reaction {rxn_id} has {rxn.reactants.size} species counts, "
                f"expected {n_species}"
            )
        is_membrane_rxn = rxn.surface_kind == SurfaceReactionKind.MEMBRANE
        is_membrane_region = region.surface_kind == SurfaceKind.MEMBRANE
        if is_membrane_rxn and not is_membrane_region:
            raise InconsistentReactionDefinition(
                f"Reaction {rxn_id} is a membrane reaction but is defined for region "
                f"{region.label!r}, which is not a membrane region"
            )
        if is_membrane_region and not is_membrane_rxn:
            raise InconsistentReactionDefinition(
                f"Reaction {rxn_id} is not a membrane reaction but is defined for "
                f"membrane region {region.label!r}"
            )

        surface_kinds[j] = rxn.surface_kind
        mol_change[j] = rxn.products - rxn.reactants
        update_prop[j] = rxn.reactants > 0
        for species, count in enumerate(rxn.reactants):
            if count == 1:
                uni_reactant[j] = species
                slot = 1 if bi_reactants[j, 0] >= 0 else 0
                bi_reactants[j, slot] = species
            elif count == 2:
                bi_reactants[j] = species
        for species, count in enumerate(rxn.products):
            products.extend([species] * int(count))
        product_offsets[j + 1] = len(products)

        order[j] = rxn.order
        if order[j] == 0:
            if rxn.surface and rxn.surface_kind != SurfaceReactionKind.NORMAL:
                raise InconsistentReactionDefinition(
                    f"Reaction {rxn_id} is 0th order and must be a normal surface reaction"
                )
            rate[j] = _scaled_rate(rxn.k, 0, region.subvolume_size, dimension)
            zeroth.append(j)
            zeroth_micro.append(rxn.k * tree.measure(handle))
        elif order[j] == 1:
            if rxn.surface_kind == SurfaceReactionKind.ABSORBING:
                diff = tree.diffusion(handle, int(uni_reactant[j]))
                if diff <= 0.0:
                    raise InconsistentReactionDefinition(
                        f"Absorbing reaction {rxn_id} in region {region.label!r} needs a "
                        f"positive diffusion coefficient for species {uni_reactant[j]}"
                    )
                rate[j] = rxn.k * math.sqrt(math.pi * dt / diff)
            else:
                rate[j] = rxn.k
            first.append(j)
        elif order[j] == 2:
            if rxn.surface and rxn.surface_kind != SurfaceReactionKind.NORMAL:
                raise InconsistentReactionDefinition(
                    f"Reaction {rxn_id} is 2nd order and must be a normal surface reaction"
                )
            rate[j] = _scaled_rate(rxn.k, 2, region.subvolume_size, dimension)
            second.append(j)
        else:
            raise InconsistentReactionDefinition(
                f"Reaction {rxn_id} has too many reactants ({order[j]})"
            )

    first_offsets = np.zeros(n_species + 1, dtype=np.int64)
    first_rxn_ids: List[int] = []
    cum_prob: List[float] = []
    relative: List[float] = []
    uni_sum_rate = np.zeros(n_species)
    for species in range(n_species):
        competing = [j for j in first if uni_reactant[j] == species]
        exclusive = any(surface_kinds[j] != SurfaceReactionKind.NORMAL for j in competing)
        if exclusive and len(competing) > 1:
            raise InconsistentReactionDefinition(
                f"Species {species} in region {region.label!r} can take part in "
                f"{len(competing)} first order reactions but at least one is exclusive "
                "(non-normal surface reactions are exclusive)"
            )
        total = float(sum(rate[j] for j in competing))
        num_inf = sum(1 for j in competing if math.isinf(rate[j]))
        uni_sum_rate[species] = total
        cum = 0.0
        for j in competing:
            if surface_kinds[j] == SurfaceReactionKind.ABSORBING:
                rel = cum = float(rate[j])
            elif math.isinf(rate[j]):
                rel = 1.0 / num_inf
                cum += rel
            else:
                rel = rate[j] / total if total > 0.0 else 0.0
                cum += rel * (1.0 - math.exp(-dt * total))
            first_rxn_ids.append(j)
            cum_prob.append(cum)
            relative.append(rel)
        first_offsets[species + 1] = len(first_rxn_ids)

    return CompiledReactionTable(
        region=handle,
        num_species=n_species,
        reaction_ids=np.asarray(local, dtype=np.int64),
        order=order,
        rate=rate,
        surface_kinds=surface_kinds,
        zeroth=np.asarray(zeroth, dtype=np.int64),
        rate_zeroth_micro=np.asarray(zeroth_micro, dtype=np.float64),
        first=np.asarray(first, dtype=np.int64),
        second=np.asarray(second, dtype=np.int64),
        mol_change=mol_change,
        update_prop=update_prop,
        product_ids=np.asarray(products, dtype=np.int64),
        product_offsets=product_offsets,
        uni_reactant=uni_reactant,
        bi_reactants=bi_reactants,
        first_offsets=first_offsets,
        first_rxn_ids=np.asarray(first_rxn_ids, dtype=np.int64),
        uni_cum_prob=np.asarray(cum_prob, dtype=np.float64),
        uni_relative_rate=np.asarray(relative, dtype=np.float64),
        uni_sum_rate=uni_sum_rate,
        no_reaction_prob=np.exp(-dt * uni_sum_rate),
    )


def compile_reactions(
    tree: RegionTree, reactions: Sequence[ChemicalReaction], dt: float
) -> List[CompiledReactionTable]:
    """Compile one reaction table per region, in handle order."""
    if not dt > 0.0:
        raise ValueError(f"Time step must be positive, got {dt}")
    return [_compile_region(tree, handle, reactions, dt) for handle in range(len(tree))]


__all__ = [
    "SurfaceReactionKind",
    "ChemicalReaction",
    "CompiledReactionTable",
    "compile_reactions",
]
