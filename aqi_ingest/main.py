"""CLI entry point del bridge MQTT → InfluxDB."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional, Sequence

from common.config import ConfigError, load_config, load_env_file, resolve_config_path

from .core.storage.influx_writer import ReadingWriter
from .core.transport.subscription import SubscriptionLoop

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="staten",
        description="Bridge de calidad de aire: MQTT (JSON) → InfluxDB (serie aqi)",
    )
    p.add_argument(
        "config_path",
        nargs="?",
        default=None,
        help="ruta al JSON de configuración (por defecto /etc/staten_config.json)",
    )
    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_env_file()

    level_name = os.getenv("STATEN_LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(level_name)
    valid_level = isinstance(level, int)

    logging.basicConfig(
        level=level if valid_level else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    if not valid_level:
        logger.warning("[CONFIG] Unknown STATEN_LOG_LEVEL=%r, using INFO", level_name)

    args = _build_parser().parse_args(argv)
    config_path = resolve_config_path(args.config_path)

    try:
        config = load_config(config_path)
        # Variables INFLUX_* inválidas fallan aquí, no en cada mensaje
        ReadingWriter.from_config(config)
        loop = SubscriptionLoop(config)
    except ConfigError as e:
        logger.error("[CONFIG] %s", e)
        return 1

    logger.info(
        "[CONFIG] Loaded %s: topic=%s influx=%s db=%s",
        config_path,
        config.mqtt_topic,
        config.influx_url,
        config.influx_db,
    )

    try:
        asyncio.run(loop.run())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
