# Configuration settings are stored on the Craft class and can be overridden with environment variables.
# Per resource route configuration can be kept in a craft.yml / craft.yaml / craft.json file in the project root,
# load_craft_config reads it and returns a normalized CraftConfig
import json
import logging
import os
from types import MappingProxyType
from typing import Any, Dict, Mapping, NamedTuple, Optional, Sequence, Union

import yaml

from .craft_init import Craft, log
from .errors import ConfigError

CONFIG_CANDIDATES = ("craft.yml", "craft.yaml", "craft.json")


def _convert(value: str, default: Any) -> Any:
    """Convert an environment string to the type of the class level default"""
    if isinstance(default, bool):
        return value.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(value)
    return value


def get_config(option: str) -> Optional[Union[bool, int, str]]:
    """Retrieve a configuration parameter
    Environment variables take precedence over the Craft class variables

    :param option: configuration parameter
    :return: configuration value
    """
    default = getattr(Craft, option, None)
    env_value = os.environ.get(option)
    if env_value is None:
        return default
    try:
        return _convert(env_value, default)
    except ValueError:
        log.warning(f'Invalid value for {option} in environment: "{env_value}", using {default}')
        return default


def is_debug() -> bool:
    """
    We use the loglevel to check whether we're running in debug mode
    :return: whether the app is in debug mode
    """
    return log.getEffectiveLevel() < logging.INFO


class CraftConfig(NamedTuple):
    """Normalized contents of a craft config file"""

    base_path: str = "/api"
    routes: Mapping[str, Dict[str, Any]] = MappingProxyType({})
    ignore: Sequence[str] = ()


def normalize_config(cfg: Optional[Dict[str, Any]] = None) -> CraftConfig:
    cfg = cfg or {}
    if not isinstance(cfg, dict):
        raise ConfigError(f"Config root must be a mapping, got {type(cfg).__name__}")
    base_path = cfg.get("basePath", cfg.get("base_path"))
    routes = cfg.get("routes")
    ignore = cfg.get("ignore")
    return CraftConfig(
        base_path=base_path if isinstance(base_path, str) else get_config("BASE_PATH"),
        routes=routes if isinstance(routes, dict) else {},
        ignore=list(ignore) if isinstance(ignore, list) else [],
    )


def load_craft_config(config_path: Optional[str] = None, root_dir: Optional[str] = None) -> CraftConfig:
    """Load craft.yml, craft.yaml or craft.json

    :param config_path: optional custom path, relative to root_dir
    :param root_dir: project root, defaults to the current working directory
    :return: CraftConfig, defaults when no file was found
    """
    root = os.path.abspath(root_dir) if root_dir else os.getcwd()
    if config_path:
        candidates = [os.path.join(root, config_path)]
    else:
        candidates = [os.path.join(root, name) for name in CONFIG_CANDIDATES]

    filename = next((path for path in candidates if os.path.isfile(path)), None)
    if filename is None:
        log.debug(f"No craft config found in {root}, using defaults")
        return normalize_config()

    try:
        with open(filename, "rt", encoding="utf-8") as fp:
            raw = fp.read()
    except OSError as exc:
        raise ConfigError(f"Failed to read {filename}: {exc}")

    ext = os.path.splitext(filename)[1].lower()
    try:
        if ext in (".yml", ".yaml"):
            data = yaml.safe_load(raw)
        elif ext == ".json":
            data = json.loads(raw or "{}")
        else:
            raise ConfigError(f"Unsupported config file type: {filename}")
    except (yaml.YAMLError, ValueError) as exc:
        raise ConfigError(f"Failed to parse {filename}: {exc}")

    log.info(f"Loaded craft config from {filename}")
    return normalize_config(data)
