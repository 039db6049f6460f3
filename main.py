"""
Headless Barnes-Hut runner
==========================

Simulates a small three-body system (a heavy central mass with two light
orbiting bodies) and logs progress and conserved quantities. The simulation
runs on its own thread and hands read-only snapshots to the main thread,
the same way a renderer would consume them.
"""
import argparse
import logging
import math
import threading
import time
from queue import Empty, Full, Queue

import numpy as np

import diagnostics
from body import Body
from settings import SimulationConfig
from simulation import Simulation

logger = logging.getLogger("gravity_sim")


class PeriodicLogger:
    """Logs a message at most once per interval."""

    def __init__(self, name: str, level: int = logging.INFO, interval: float = 1.0):
        self.name = name
        self.level = level
        self.interval = interval
        self.last = None

    def log(self, message: str) -> None:
        now = time.monotonic()
        if self.last is None or now - self.last >= self.interval:
            self.last = now
            logger.log(self.level, "%s: %s", self.name, message)


def three_body(G: float = 1.0):
    """A central mass with two bodies on roughly circular orbits."""
    central = 10000.0
    bodies = [Body((0.0, 0.0), (0.0, 0.0), central, 2.0)]
    for radius, mass in ((50.0, 100.0), (55.0, 10.0)):
        speed = math.sqrt(G * central / radius)
        bodies.append(Body((0.0, radius), (speed, 0.0), mass, 0.5))
    return bodies


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Headless 2D Barnes-Hut gravity simulation")
    parser.add_argument("--frames", type=int, default=240, help="Number of frames to simulate")
    parser.add_argument("--substeps", type=int, default=20, help="Ticks per frame")
    parser.add_argument("--dt", type=float, default=0.01, help="Fixed time step")
    parser.add_argument("--theta", type=float, default=1.0, help="Barnes-Hut opening threshold")
    parser.add_argument("--softening", type=float, default=0.1, help="Softening length")
    parser.add_argument("--workers", type=int, default=None, help="Force worker threads")
    parser.add_argument("--no-merge", action="store_true", help="Disable merging of overlapping bodies")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    config = SimulationConfig(dt=args.dt, theta=args.theta, softening=args.softening,
                              workers=args.workers, merge_enabled=not args.no_merge)
    state_queue = Queue(maxsize=1)  # Only keep latest state

    with Simulation(three_body(config.G), config) as sim:
        initial_momentum = diagnostics.total_momentum(sim.store)
        initial_energy = diagnostics.total_energy(sim.store, config.G, config.softening)

        def simulation_loop():
            for snapshot in sim.run(args.frames * args.substeps):
                if snapshot.tick % args.substeps:
                    continue
                try:
                    state_queue.put_nowait((snapshot.tick // args.substeps, snapshot))
                except Full:
                    pass  # Skip update if the consumer is behind

        sim_thread = threading.Thread(target=simulation_loop, daemon=True)
        sim_thread.start()

        progress = PeriodicLogger("simulating")
        try:
            while sim_thread.is_alive() or not state_queue.empty():
                try:
                    frame, snapshot = state_queue.get(timeout=0.1)
                except Empty:
                    continue
                progress.log(f"{frame} / {args.frames} (tick {snapshot.tick}, {len(snapshot)} bodies)")
        except KeyboardInterrupt:
            logger.info("Interrupted, finishing the current tick")
            sim.stop()
        sim_thread.join()

        final = sim.snapshot()
        drift = np.linalg.norm(diagnostics.total_momentum(final) - initial_momentum)
        energy = diagnostics.total_energy(final, config.G, config.softening)
        logger.info("Finished at tick %d with %d bodies", final.tick, len(final))
        logger.info("Momentum drift %.3e, energy %.6g -> %.6g", drift, initial_energy, energy)
        for body in final:
            logger.info("  %r", body)


if __name__ == "__main__":
    main()
