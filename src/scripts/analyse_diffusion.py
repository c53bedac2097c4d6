"""
Diffusion coefficient estimate from mean-squared displacement.

Releases molecules at the centre of a large reflecting box, records the
mean-squared displacement after every step and fits MSD = 6 D t.
"""
from __future__ import annotations

import argparse

import numpy as np
from scipy.stats import linregress

from mcrd_sim import Boundary, MicroSimulator, RegionTree, SimulatorParams, build_context


def simulate_msd(
    diffusion: float,
    dt: float,
    num_molecules: int = 1000,
    num_steps: int = 50,
    half_width: float = 1.0,
    seed: int | None = 0,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Mean-squared displacement of molecules released at the origin.

    Returns:
        (times, msd) arrays of length ``num_steps``
    """
    tree = RegionTree(num_species=1)
    h = half_width
    tree.add_region("box", Boundary.box(-h, h, -h, h, -h, h), diffusion=[diffusion])
    context = build_context(tree, [], ["A"], dt)
    sim = MicroSimulator(context, SimulatorParams(seed=seed))
    sim.add_molecules("box", "A", np.zeros((num_molecules, 3)))

    times = np.empty(num_steps)
    msd = np.empty(num_steps)
    for i in range(num_steps):
        sim.step()
        pos = sim.positions("box", "A")
        times[i] = sim.time
        msd[i] = float(np.mean(np.sum(pos * pos, axis=1)))
    return times, msd


def estimate_diffusion_coefficient(times: np.ndarray, msd: np.ndarray) -> tuple[float, float]:
    """
    Fit MSD = 6 D t + c.

    Returns:
        (D, r_squared)
    """
    if len(times) < 2:
        raise ValueError("Need at least two time points for a fit.")
    slope, intercept, r_value, p_value, std_err = linregress(times, msd)
    return slope / 6.0, r_value ** 2


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Estimate the diffusion coefficient of a free species from its MSD."
    )
    parser.add_argument("--D", type=float, default=1e-9, help="diffusion coefficient")
    parser.add_argument("--dt", type=float, default=1e-4, help="time step")
    parser.add_argument("--molecules", type=int, default=1000)
    parser.add_argument("--steps", type=int, default=50)
    parser.add_argument("--half-width", type=float, default=1e-3, help="half width of the box")
    parser.add_argument("--seed", type=int, default=0)
    args = parser.parse_args()

    times, msd = simulate_msd(
        args.D, args.dt, args.molecules, args.steps, args.half_width, args.seed
    )
    D_est, r2 = estimate_diffusion_coefficient(times, msd)
    print("=" * 60)
    print(f"Input D:     {args.D:.4e}")
    print(f"Estimated D: {D_est:.4e} (R² = {r2:.6f})")
    print(f"Relative error: {abs(D_est - args.D) / args.D:.2%}")
    print("=" * 60)


if __name__ == "__main__":
    main()
