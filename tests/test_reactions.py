"""
Reaction compiler: placement, rate scaling and first-order probability tables.
"""

import math

import numpy as np
import pytest

from mcrd_sim import (
    Boundary,
    ChemicalReaction,
    RegionKind,
    RegionTree,
    SurfaceKind,
    SurfaceReactionKind,
    build_context,
    compile_reactions,
    context_from_config,
)
from mcrd_sim.errors import InconsistentReactionDefinition

UNIT_BOX = Boundary.box(0, 1, 0, 1, 0, 1)


def single_region(num_species=1, **kwargs):
    tree = RegionTree(num_species=num_species)
    kwargs.setdefault("diffusion", [1.0] * num_species)
    tree.add_region("env", UNIT_BOX, **kwargs)
    return tree


def with_surface(surface_kind=SurfaceKind.OUTER, diffusion=1e-9):
    tree = single_region(diffusion=[diffusion])
    tree.add_region(
        "wall", Boundary.sphere(0.5, 0.5, 0.5, 0.25), parent="env",
        kind=RegionKind.SURFACE_3D, surface_kind=surface_kind,
    )
    return tree


def test_zeroth_order_rate_in_mesoscopic_region():
    tree = single_region(micro=False, subvolume_size=0.1)
    table = compile_reactions(tree, [ChemicalReaction([0], [1], k=2.0)], dt=1.0)[0]
    assert table.zeroth.tolist() == [0]
    assert table.rate[0] == pytest.approx(0.002)
    assert table.rate_zeroth_micro[0] == pytest.approx(2.0)


def test_second_order_rate_is_divided():
    tree = single_region(subvolume_size=0.1)
    table = compile_reactions(tree, [ChemicalReaction([2], [0], k=1.0)], dt=1.0)[0]
    assert table.second.tolist() == [0]
    assert table.rate[0] == pytest.approx(1000.0)
    assert table.bi_reactants[0].tolist() == [0, 0]


def test_competing_first_order_probabilities():
    tree = single_region()
    reactions = [
        ChemicalReaction([1], [0], k=1.0),
        ChemicalReaction([1], [0], k=3.0),
    ]
    table = compile_reactions(tree, reactions, dt=0.25)[0]
    ids, cum = table.first_order(0)
    assert ids.tolist() == [0, 1]
    assert cum[0] == pytest.approx(0.25 * (1.0 - math.exp(-1.0)))
    assert cum[1] == pytest.approx(1.0 - math.exp(-1.0))
    assert table.uni_relative_rate.tolist() == pytest.approx([0.25, 0.75])
    assert table.no_reaction_prob[0] == pytest.approx(math.exp(-1.0))


def test_infinite_rates_share_probability():
    tree = single_region()
    reactions = [
        ChemicalReaction([1], [0], k=math.inf),
        ChemicalReaction([1], [0], k=math.inf),
    ]
    table = compile_reactions(tree, reactions, dt=0.1)[0]
    _, cum = table.first_order(0)
    assert cum.tolist() == pytest.approx([0.5, 1.0])
    assert table.no_reaction_prob[0] == 0.0


def test_absorbing_rate():
    tree = with_surface()
    rxn = ChemicalReaction([1], [0], k=1.0, surface=True, surface_kind=SurfaceReactionKind.ABSORBING)
    tables = compile_reactions(tree, [rxn], dt=0.01)
    assert tables[0].num_reactions == 0
    wall = tables[1]
    assert wall.rate[0] == pytest.approx(math.sqrt(math.pi * 0.01 / 1e-9))
    assert wall.rate[0] == pytest.approx(5604.99, rel=1e-5)
    assert wall.exclusive_reaction(0) == 0
    _, cum = wall.first_order(0)
    assert cum[0] == pytest.approx(wall.rate[0])


def test_absorbing_needs_diffusion():
    tree = with_surface(diffusion=0.0)
    rxn = ChemicalReaction([1], [0], k=1.0, surface=True, surface_kind=SurfaceReactionKind.ABSORBING)
    with pytest.raises(InconsistentReactionDefinition, match="positive diffusion"):
        compile_reactions(tree, [rxn], dt=0.01)


def test_exceptions_toggle_placement():
    tree = single_region()
    tree.add_region("inner", Boundary.box(0.2, 0.4, 0.2, 0.4, 0.2, 0.4), parent="env")

    def placed(**kwargs):
        rxn = ChemicalReaction([1], [0], k=1.0, **kwargs)
        return [t.num_reactions for t in compile_reactions(tree, [rxn], dt=1.0)]

    assert placed() == [1, 1]
    assert placed(exceptions=["inner"]) == [1, 0]
    assert placed(exceptions=["inner", "inner"]) == [1, 1]
    assert placed(everywhere=False, exceptions=["inner"]) == [0, 1]


def test_membrane_reaction_needs_membrane_region():
    tree = with_surface(SurfaceKind.OUTER)
    rxn = ChemicalReaction([1], [1], k=1.0, surface=True, surface_kind=SurfaceReactionKind.MEMBRANE)
    with pytest.raises(InconsistentReactionDefinition, match="not a membrane region"):
        compile_reactions(tree, [rxn], dt=1.0)


def test_membrane_region_needs_membrane_reaction():
    tree = with_surface(SurfaceKind.MEMBRANE)
    rxn = ChemicalReaction([1], [0], k=1.0, surface=True)
    with pytest.raises(InconsistentReactionDefinition, match="membrane region"):
        compile_reactions(tree, [rxn], dt=1.0)


def test_exclusive_reaction_cannot_compete():
    tree = with_surface()
    reactions = [
        ChemicalReaction([1], [0], k=1.0, surface=True, surface_kind=SurfaceReactionKind.ABSORBING),
        ChemicalReaction([1], [0], k=1.0, surface=True),
    ]
    with pytest.raises(InconsistentReactionDefinition, match="exclusive"):
        compile_reactions(tree, reactions, dt=1.0)


def test_third_order_is_rejected():
    tree = single_region()
    with pytest.raises(InconsistentReactionDefinition, match="too many reactants"):
        compile_reactions(tree, [ChemicalReaction([3], [0], k=1.0)], dt=1.0)


def test_products_and_molecule_change():
    tree = single_region(num_species=3)
    rxn = ChemicalReaction([1, 1, 0], [0, 0, 2], k=1.0)
    table = compile_reactions(tree, [rxn], dt=1.0)[0]
    assert table.order.tolist() == [2]
    assert table.bi_reactants[0].tolist() == [0, 1]
    assert table.mol_change[0].tolist() == [-1, -1, 2]
    assert table.update_prop[0].tolist() == [True, True, False]
    assert table.products(0).tolist() == [2, 2]


def test_reaction_validation():
    with pytest.raises(InconsistentReactionDefinition):
        ChemicalReaction([1, 0], [0], k=1.0)
    with pytest.raises(InconsistentReactionDefinition):
        ChemicalReaction([1], [0], k=-1.0)
    with pytest.raises(InconsistentReactionDefinition, match="not a surface reaction"):
        ChemicalReaction([1], [0], k=1.0, surface_kind=SurfaceReactionKind.ABSORBING)

    tree = single_region(num_species=2)
    with pytest.raises(InconsistentReactionDefinition, match="species counts"):
        compile_reactions(tree, [ChemicalReaction([1], [0], k=1.0)], dt=1.0)


def test_fractional_counts_are_rejected():
    with pytest.raises(InconsistentReactionDefinition, match="whole-number reactant"):
        ChemicalReaction([1.5], [0], k=1.0)
    with pytest.raises(InconsistentReactionDefinition, match="whole-number product"):
        ChemicalReaction([1], [0.25], k=1.0)
    assert ChemicalReaction([2.0], [1.0], k=1.0).reactants.tolist() == [2]

    config = {
        "species": ["A"],
        "dt": 1.0,
        "regions": [{"label": "env", "shape": "box", "params": [0, 1, 0, 1, 0, 1],
                     "diffusion": [1.0]}],
        "reactions": [{"reactants": {"A": 1.5}, "products": {}, "k": 1.0}],
    }
    with pytest.raises(InconsistentReactionDefinition):
        context_from_config(config)


def test_time_step_must_be_positive():
    with pytest.raises(ValueError):
        compile_reactions(single_region(), [], dt=0.0)


def test_context_from_config():
    config = {
        "species": ["A", "B"],
        "dt": 0.01,
        "regions": [
            {"label": "env", "shape": "box", "params": [0, 1, 0, 1, 0, 1],
             "diffusion": {"A": 1e-3, "B": 2e-3}},
            {"label": "rx", "shape": "sphere", "params": [0.5, 0.5, 0.5, 0.2], "parent": "env",
             "kind": "surface_3d", "surface_kind": "outer"},
        ],
        "reactions": [
            {"reactants": {"A": 1}, "products": {"B": 1}, "k": 5.0,
             "surface": True, "surface_kind": "absorbing"},
            {"reactants": [0, 1], "products": [0, 0], "k": 0.5},
        ],
    }
    context = context_from_config(config)
    assert context.species_index("B") == 1
    rx = context.tree.handle("rx")
    assert context.table(rx).exclusive_reaction(0) == 0
    assert context.table(rx).products(0).tolist() == [1]
    env_ids, _ = context.table(0).first_order(1)
    assert env_ids.tolist() == [0]
    assert context.tree.diffusion(rx, 1) == pytest.approx(2e-3)

    config["regions"][0]["diffusion"] = {"C": 1.0}
    with pytest.raises(ValueError, match="unknown species"):
        context_from_config(config)


def test_build_context_checks_species_names():
    with pytest.raises(ValueError):
        build_context(single_region(), [], ["A", "B"], dt=1.0)
    context = build_context(single_region(), [], ["A"], dt=1.0)
    assert context.num_species == 1
    with pytest.raises(KeyError):
        context.species_index("Z")
    assert np.all(context.table(0).first_offsets == 0)
