"""
Galaxy N-Body Simulation
========================

Direct-summation gravity for spiral and elliptical galaxies, one worker per
particle per step, double-buffered generations and velocity-aligned glyphs.

Usage:
    python galaxy_main.py                      # interactive viewer
    python galaxy_main.py --galaxies 2         # two colliding spirals
    python galaxy_main.py --headless --steps 500 --bodies 2000

Controls:
    - W/S: Rotate camera up/down
    - A/D: Rotate camera left/right
    - Q/E: Zoom in/out
    - Mouse drag: Rotate camera
    - Mouse wheel: Zoom
    - SPACE: Pause/Resume simulation
    - R: Reset simulation
    - H: Toggle help text
    - ESC: Quit
"""

import argparse
import sys
import time

from config import galaxy as config
from galaxy import GalaxySimError, GalaxySimulation, SimParams
from galaxy.initialize import DISTRIBUTIONS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Galaxy N-body simulation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python galaxy_main.py --galaxies 2 --bodies 20000
  python galaxy_main.py --force-law plummer --color-mode index_split
  python galaxy_main.py --headless --steps 1000 --report-every 100
        """
    )
    parser.add_argument("--galaxies", type=int, default=None,
                        help=f"Number of galaxies (default: {config.GALAXY['num_galaxies']})")
    parser.add_argument("--headless", action="store_true",
                        help="Run without a window and print progress")
    parser.add_argument("--bodies", type=int, default=None,
                        help=f"Number of particles (default: {config.GALAXY['count']:,})")
    parser.add_argument("--steps", type=int, default=1000,
                        help="Steps to run in headless mode (default: 1000)")
    parser.add_argument("--report-every", type=int, default=100,
                        help="Headless progress interval in steps (default: 100)")
    parser.add_argument("--steps-per-frame", type=int, default=1,
                        help="Simulation steps per rendered frame (default: 1)")
    parser.add_argument("--dt", type=float, default=None,
                        help=f"Time step (default: {config.SIMULATION['dt']})")
    parser.add_argument("--distribution", choices=sorted(DISTRIBUTIONS), default=None,
                        help=f"Initial distribution (default: {config.GALAXY['distribution']})")
    parser.add_argument("--force-law", default=None,
                        help="newtonian, plummer, halo or multi_galaxy "
                             f"(default: {config.SIMULATION['force_law']})")
    parser.add_argument("--integrator", default=None,
                        help=f"leapfrog or euler (default: {config.SIMULATION['integrator']})")
    parser.add_argument("--color-mode", default=None,
                        help=f"constant, index_split or galaxy (default: {config.RENDER['color_mode']})")
    parser.add_argument("--glyph-mode", default=None,
                        help=f"flat or spatial (default: {config.RENDER['glyph_mode']})")
    parser.add_argument("--cpu", action="store_true",
                        help="Disable the CUDA backend")
    return parser


def create_simulation(args) -> GalaxySimulation:
    overrides = {}
    if args.dt is not None:
        overrides["dt"] = args.dt
    params = SimParams.from_config(**overrides)

    return GalaxySimulation(
        num_particles=args.bodies,
        num_galaxies=args.galaxies,
        distribution=args.distribution,
        force_law=args.force_law,
        integrator=args.integrator,
        params=params,
        color_mode=args.color_mode,
        glyph_mode=args.glyph_mode,
        use_gpu=not args.cpu,
    )


def run_headless(sim: GalaxySimulation, steps: int, report_every: int) -> dict:
    """Advance `steps` steps, printing a progress line every `report_every`."""
    report_every = max(1, report_every)
    print(f"[Galaxy] Running {steps:,} steps headless...")
    start = time.time()
    done = 0
    while done < steps:
        chunk = min(report_every, steps - done)
        sim.update(chunk)
        done += chunk

        stats = sim.stats()
        elapsed = time.time() - start
        rate = done / elapsed if elapsed > 0 else 0
        print(f"[Galaxy] Step {done:,}/{steps:,}  t={stats['time']:.4f}  "
              f"KE={stats['kinetic_energy']:.4e}  ({rate:.1f} steps/s)")
        if not stats["finite"]:
            print("[Galaxy] Warning: non-finite positions or velocities")

    print(f"[Galaxy] Done in {time.time() - start:.1f}s")
    return sim.stats()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        sim = create_simulation(args)
        if args.headless:
            run_headless(sim, args.steps, args.report_every)
            return 0
    except GalaxySimError as e:
        print(f"[Galaxy] Error: {e}")
        return 1

    from core import GalaxyApplication

    app = GalaxyApplication(sim, steps_per_frame=args.steps_per_frame)
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
