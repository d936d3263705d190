from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .core.config import Settings, settings
from .core.log import configure_logging

from .api.routes import router as api_router
import sumpmon.api.routes as routes_module

from .domain import programs
from .domain.interfaces import LightDriver, TelemetrySink
from .drivers.hue_bridge import HueBridgeDriver
from .drivers.lights_sim import SimulatedLightDriver
from .sensors.pump_link import PumpLink
from .services.lights import LightingActor
from .services.monitor import MonitorService
from .storage.redis_sink import RedisTelemetrySink
from .storage.sqlite_sink import SQLiteTelemetrySink


logger = logging.getLogger(__name__)


def build_sink(cfg: Settings) -> TelemetrySink:
    if cfg.storage_backend.lower() == "sqlite":
        return SQLiteTelemetrySink(cfg.sqlite_path, namespace=cfg.stream_namespace)
    return RedisTelemetrySink(
        host=cfg.redis_host,
        port=cfg.redis_port,
        db=cfg.redis_db,
        namespace=cfg.stream_namespace,
    )


def build_driver(cfg: Settings) -> LightDriver:
    if cfg.light_driver.lower() == "hue":
        return HueBridgeDriver(
            host=cfg.hue_bridge_host,
            username=cfg.hue_username,
            timeout=cfg.hue_timeout,
        )
    # default to sim
    return SimulatedLightDriver()


def build_monitor(cfg: Settings, sink: TelemetrySink, lights: LightingActor) -> MonitorService:
    return MonitorService(
        link_factory=lambda: PumpLink(cfg.sensor_host, cfg.sensor_port),
        sink=sink,
        lights=lights,
        light_ids=cfg.light_ids,
        retry_delay=cfg.retry_delay_seconds,
    )


async def start_services(cfg: Settings, sink: TelemetrySink, lights: LightingActor, monitor: MonitorService) -> None:
    await sink.init()
    await lights.start()
    lights.send(programs.startup(cfg.light_ids))
    await monitor.start()


async def stop_services(cfg: Settings, sink: TelemetrySink, lights: LightingActor, monitor: MonitorService) -> None:
    await monitor.stop()
    await lights.stop(drain_timeout=cfg.light_drain_seconds)
    await sink.close()


def create_app(cfg: Settings = settings) -> FastAPI:
    sink = build_sink(cfg)
    lights = LightingActor(build_driver(cfg))
    monitor = build_monitor(cfg, sink, lights)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(cfg.log_level.upper(), cfg.log_file)
        logger.info(
            "Starting %s (pump=%s:%s storage=%s lights=%s)",
            cfg.app_name,
            cfg.sensor_host,
            cfg.sensor_port,
            cfg.storage_backend,
            cfg.light_driver,
        )

        await start_services(cfg, sink, lights, monitor)

        try:
            yield
        finally:
            await stop_services(cfg, sink, lights, monitor)
            logger.info("Shutdown complete")

    app = FastAPI(title=cfg.app_name, lifespan=lifespan)

    # Make the dependency functions in routes resolve to the real ones
    app.dependency_overrides[routes_module.get_monitor] = lambda: monitor
    app.dependency_overrides[routes_module.get_sink] = lambda: sink
    app.dependency_overrides[routes_module.get_settings] = lambda: cfg

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
