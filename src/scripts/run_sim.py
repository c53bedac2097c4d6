# src/scripts/run_sim.py
import argparse

from mcrd_sim import simulator, utils


def main():
    parser = argparse.ArgumentParser(description="Run a microscopic reaction-diffusion simulation.")
    parser.add_argument("--config", required=True, help="JSON or TOML configuration file")
    parser.add_argument("--steps", type=int, default=100, help="number of time steps")
    parser.add_argument("--seed", type=int, default=42, help="random seed")
    parser.add_argument("--out", default=None, help="output .npz (default: results/sim_<timestamp>.npz)")
    parser.add_argument("--verbose", action="store_true", help="print progress")
    args = parser.parse_args()

    config = utils.load_params(args.config)
    params = simulator.SimulatorParams(num_steps=args.steps, seed=args.seed, verbose=args.verbose)
    result = simulator.run_model(config, params)
    result.ensure_meta()["config"] = str(args.config)

    out = args.out or f"results/sim_{utils.now_str()}.npz"
    utils.save_simulation_result(out, result)
    print(f"Result saved to {out}")
    for (region, species), positions in sorted(result.positions.items()):
        if len(positions):
            print(f"  {region:>12s} {species:>8s}: {len(positions)} molecules")
    for (region, species), count in sorted(result.meso_counts.items()):
        if count:
            print(f"  {region:>12s} {species:>8s}: {count} (mesoscopic)")


if __name__ == "__main__":
    main()
