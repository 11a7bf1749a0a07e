"""
CLI Entrypoint Module

Runs the replenishment controller in a loop:
- Loads a factory config (--config or REPLENISHER_CONFIG); without one, the
  simulated toy world is used
- Validates containers once, then runs a tick every --interval seconds
- Stops after --ticks ticks, or runs until interrupted

Usage:
    python -m replenisher.main --ticks 10 --interval 0
    python -m replenisher.main --config factory.yaml
"""

import argparse
import logging
import random
import time
from typing import Optional

from .config import get_config_path, get_log_level, get_scan_interval, load_factory_config
from .containers import Transport
from .errors import ConfigError
from .tasks import FactoryController
from .world import ToyWorld, build_network, build_toy_factory


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Factory replenisher: keeps machines fed from a central store."
    )
    parser.add_argument("--config", help="Path to a factory YAML config (default: REPLENISHER_CONFIG).")
    parser.add_argument("--ticks", type=int, default=None, help="Stop after this many ticks.")
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between ticks (default: REPLENISHER_SCAN_INTERVAL or 2.0).",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for weighted material selection.")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Run the replenisher CLI.

    Returns:
        0 on success, 1 on a config or startup error.
    """
    logging.basicConfig(
        level=get_log_level(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger = logging.getLogger("replenisher")

    args = build_parser().parse_args(argv)
    interval = args.interval if args.interval is not None else get_scan_interval()
    if interval < 0:
        print("ERROR: --interval must be >= 0")
        return 1

    world: Optional[ToyWorld] = None
    config_path = args.config or get_config_path()
    if config_path:
        try:
            config = load_factory_config(config_path)
        except ConfigError as exc:
            print(f"ERROR: {exc}")
            for violation in exc.details.get("violations", []):
                print(f"  - {violation}")
            return 1
        # No real transport ships with the package; a config file runs against
        # an empty simulated network with the same container names.
        transport: Transport = build_network(config)
    else:
        world = build_toy_factory()
        config = world.config
        transport = world.network

    controller = FactoryController(config, transport, rng=random.Random(args.seed))
    start_res = controller.start()
    if not start_res.ok:
        print(f"ERROR: {start_res.error.message} ({start_res.kind.value})")
        return 1

    for section in controller.registry.diagnostics():
        logger.debug("%s: %s", section.title, "; ".join(section.lines))

    logger.info("=== Starting main loop ===")
    try:
        while args.ticks is None or controller.tick_count < args.ticks:
            started = time.monotonic()
            report = controller.run_tick()
            if world is not None:
                world.tick()

            logger.info(
                "tick %d: transfers=%d items=%d",
                report.tick,
                report.metrics.transfers,
                report.metrics.items_moved,
            )

            if args.ticks is not None and controller.tick_count >= args.ticks:
                break
            elapsed = time.monotonic() - started
            time.sleep(max(0.0, interval - elapsed))
    except KeyboardInterrupt:
        print("\naborted.")

    print(f"ran {controller.tick_count} ticks")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
