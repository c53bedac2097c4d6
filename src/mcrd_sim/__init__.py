"""
Molecular Communication Reaction-Diffusion Simulation Library - Core Kernel

This package provides the hybrid stochastic reaction-diffusion kernel:
- Boundary geometry over boxes, spheres, cylinders and planar surfaces
- A reaction compiler producing per-region rate and probability tables
- A diffusion validator resolving molecule paths through nested regions
- MicroSimulator: a microscopic driver built on the three
"""

from .boundary import Boundary, Direction, Plane, Shape
from .context import SimulationContext, build_context, context_from_config
from .diffusion import DiffusionResult, DiffusionState, follow_molecule, validate_molecule
from .reactions import ChemicalReaction, CompiledReactionTable, SurfaceReactionKind, compile_reactions
from .region import Region, RegionKind, RegionTree, SurfaceKind
from .simulator import MicroSimulator, SimulatorParams, run_model
from . import errors, geometry, rays, utils

__all__ = [
    # Geometry
    "Boundary",
    "Shape",
    "Plane",
    "Direction",
    "geometry",
    "rays",
    # Regions and reactions
    "Region",
    "RegionKind",
    "SurfaceKind",
    "RegionTree",
    "ChemicalReaction",
    "SurfaceReactionKind",
    "CompiledReactionTable",
    "compile_reactions",
    # Simulation
    "SimulationContext",
    "build_context",
    "context_from_config",
    "DiffusionState",
    "DiffusionResult",
    "follow_molecule",
    "validate_molecule",
    "MicroSimulator",
    "SimulatorParams",
    "run_model",
    # Utilities
    "errors",
    "utils",
]
