"""
Sump pump monitor.

Connects to the sump pump process, computes the duty cycle and in-flow
of every pump cycle, appends them to the history logs and flashes the
lights when something needs attention.

Usage:
    python -m sumpmon                  # monitor only
    python -m sumpmon -v -v            # with debug logging
    python -m sumpmon -c site.env      # settings from another env file
    python -m sumpmon --serve          # monitor plus the status API
    python -m sumpmon --print-config
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Optional, Sequence

from .core.config import Settings
from .core.log import configure_logging
from .main import build_driver, build_monitor, build_sink, create_app, start_services, stop_services
from .services.lights import LightingActor

logger = logging.getLogger(__name__)

LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="sumpmon", description="A small, yet capable, sump pump monitor.")
    p.add_argument("-c", "--config", metavar="FILE", help="env file holding SUMPMON_* settings")
    p.add_argument("-v", "--verbose", action="count", default=0,
                   help="sets verbosity of log; can be used more than once")
    p.add_argument("--print-config", action="store_true", help="displays the configuration and exits")
    p.add_argument("--serve", action="store_true", help="also serve the status API")
    p.add_argument("--host", default="0.0.0.0", help="status API bind address")
    p.add_argument("--port", type=int, default=8000, help="status API port")
    return p.parse_args(argv)


def load_settings(args: argparse.Namespace) -> Settings:
    cfg = Settings(_env_file=args.config) if args.config else Settings()
    if args.verbose:
        cfg.log_level = logging.getLevelName(LEVELS[min(args.verbose, len(LEVELS) - 1)])
    return cfg


async def run_monitor(cfg: Settings) -> None:
    sink = build_sink(cfg)
    lights = LightingActor(build_driver(cfg))
    monitor = build_monitor(cfg, sink, lights)

    await start_services(cfg, sink, lights, monitor)
    try:
        # runs until the process is killed
        await asyncio.Event().wait()
    finally:
        await stop_services(cfg, sink, lights, monitor)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    cfg = load_settings(args)

    if args.print_config:
        print(cfg.model_dump_json(indent=2))
        return 0

    if args.serve:
        import uvicorn

        uvicorn.run(create_app(cfg), host=args.host, port=args.port, log_config=None)
        return 0

    configure_logging(cfg.log_level.upper(), cfg.log_file)
    try:
        asyncio.run(run_monitor(cfg))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
