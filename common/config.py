from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_CONFIG_PATH = "/etc/staten_config.json"


class ConfigError(Exception):
    """Configuración inválida o ilegible. Fatal en el arranque."""


def _default_env_file() -> str:
    # .env junto al proceso, para credenciales de Influx en despliegues edge.
    return str(Path.cwd() / ".env")


@dataclass(frozen=True)
class StatenConfig:
    """Configuración del bridge.

    Se carga una sola vez y se comparte por referencia con todos los
    handlers concurrentes. Es inmutable, así que no necesita locks.
    """

    mqtt_url: str
    mqtt_topic: str
    influx_url: str
    influx_db: str

    @classmethod
    def from_dict(cls, data: object) -> "StatenConfig":
        if not isinstance(data, dict):
            raise ConfigError("Config must be a JSON object")

        values = {}
        for f in fields(cls):
            value = data.get(f.name)
            if value is None:
                raise ConfigError(f"Missing required config field: {f.name}")
            if not isinstance(value, str) or not value.strip():
                raise ConfigError(f"Config field must be a non-empty string: {f.name}")
            values[f.name] = value.strip()

        return cls(**values)


def load_env_file() -> None:
    # Carga el .env (si existe) sin pisar variables de entorno reales.
    env_file = os.getenv("STATEN_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)


def resolve_config_path(cli_path: Optional[str] = None) -> str:
    """Prioridad: argumento CLI > STATEN_CONFIG > ruta por defecto."""
    if cli_path:
        return cli_path
    return os.getenv("STATEN_CONFIG") or DEFAULT_CONFIG_PATH


def load_config(path: str) -> StatenConfig:
    """Lee y valida el archivo JSON de configuración.

    Raises:
        ConfigError: archivo inexistente/ilegible, JSON malformado o
            campos faltantes.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}")
    except OSError as e:
        raise ConfigError(f"Config file unreadable: {path} ({e})")
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file is not valid JSON: {path} ({e})")

    return StatenConfig.from_dict(data)
