"""
ConfigManager: cache-backed balance configuration access.

Purpose
-------
- Provide hierarchical, dot-notation access to tunable progression values
  (accrual rate, stone drop chance, breakthrough rates, cost curves).
- Back configuration with YAML defaults from the `config/` directory plus
  in-process overrides.

Responsibilities
----------------
- Load and deep-merge every YAML file under `config/` into `_defaults`.
- Serve reads from an in-memory cache.
- Apply overrides at runtime (used by operators and tests).
- Reject non-numeric or out-of-range balance numbers with `ConfigurationError`.

Key Design Decisions
--------------------
- YAML is the single source for defaults; overrides live only in memory.
- Built-in defaults mirror `config/cultivation.yaml` so the engine still runs
  when the directory is absent (e.g. an installed wheel).
- Range checks run on read, at component construction, so an override
  and a YAML edit are validated the same way.

Dependencies
------------
- PyYAML: YAML parsing
- `src.core.logging.logger.get_logger` – structured logging interface.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional, Type

import yaml

from src.core.config.config import Config
from src.core.exceptions import ConfigurationError
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


__all__ = ["ConfigManager", "BUILTIN_DEFAULTS"]


BUILTIN_DEFAULTS: Dict[str, Any] = {
    "cultivation": {
        "accrual": {
            "base_rate": 10,
            "level_bonus_step": 0.1,
        },
        "stones": {
            "drop_chance": 0.05,
            "min_amount": 1,
            "max_amount": 5,
        },
        "breakthrough": {
            "major_base_rate": 30,
            "minor_base_rate": 100,
            "failure_bonus_step": 5,
            "bonus_cap": 100,
            "failure_power_retention": 0.5,
            "minor_cost_step": 0.5,
            "max_sub_level": 9,
        },
        "methods": {
            "rarity_multipliers": {
                "common": 1,
                "uncommon": 5,
                "rare": 25,
                "epic": 100,
                "legendary": 500,
            },
        },
    },
}


# ============================================================================
# ConfigManager
# ============================================================================


class ConfigManager:
    """
    Balance configuration with YAML defaults and in-memory overrides.

    Examples
    --------
    >>> ConfigManager.initialize()
    >>> ConfigManager.get("cultivation.accrual.base_rate")
    10
    """

    _cache: Dict[str, Any] = {}
    _defaults: Dict[str, Any] = {}
    _initialized: bool = False

    # =========================================================================
    # YAML LOADING & DEFAULTS
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)  # type: ignore[index]
            else:
                target[key] = value

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> int:
        """
        Recursively load all YAML files from `config_dir` into `_defaults`.

        A malformed file is logged and skipped; the remaining files still load.
        """
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return 0

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.warning(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
                continue

            if isinstance(data, dict):
                cls._deep_merge_dict(cls._defaults, data)
                loaded_count += 1
                logger.debug(
                    "Loaded YAML config",
                    extra={"file": str(yaml_file.relative_to(config_dir))},
                )
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "root_type": type(data).__name__,
                    },
                )

        return loaded_count

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """(Re)load defaults: built-ins first, then YAML on top."""
        cls._defaults = copy.deepcopy(BUILTIN_DEFAULTS)
        loaded = cls._load_yaml_configs(config_dir or Config.CONFIG_DIR)
        cls._cache = copy.deepcopy(cls._defaults)
        cls._initialized = True

        logger.info(
            "ConfigManager initialized",
            extra={"yaml_file_count": loaded, "total_cache_keys": len(cls._cache)},
        )

    @classmethod
    def reset(cls) -> None:
        """Drop overrides; next read reinitializes."""
        cls._cache = {}
        cls._defaults = {}
        cls._initialized = False

    # =========================================================================
    # READ API
    # =========================================================================

    @staticmethod
    def _traverse(root: Dict[str, Any], key: str) -> Any:
        value: Any = root
        for part in key.split("."):
            if not isinstance(value, dict):
                return None
            value = value.get(part)
            if value is None:
                return None
        return value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Examples
        --------
        >>> ConfigManager.get("cultivation.stones.drop_chance")
        0.05
        >>> ConfigManager.get("cultivation.unknown", 3)
        3
        """
        if not cls._initialized:
            cls.initialize()

        value = cls._traverse(cls._cache, key)
        return default if value is None else value

    @classmethod
    def get_number(
        cls,
        key: str,
        default: float,
        *,
        cast: Type = float,
        minimum: Optional[float] = None,
        maximum: Optional[float] = None,
    ) -> Any:
        """
        Read a numeric balance value, converted with ``cast`` and range-checked.

        Raises:
            ConfigurationError: Value is not a number (booleans included) or
                falls outside ``[minimum, maximum]``
        """
        raw = cls.get(key, default)
        if isinstance(raw, bool) or not isinstance(raw, (int, float, str)):
            raise ConfigurationError(key, "expected a number", raw)
        try:
            value = cast(raw)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(key, "expected a number", raw) from exc

        if minimum is not None and value < minimum:
            raise ConfigurationError(key, f"must be >= {minimum}", value)
        if maximum is not None and value > maximum:
            raise ConfigurationError(key, f"must be <= {maximum}", value)
        return value

    # =========================================================================
    # WRITE API
    # =========================================================================

    @classmethod
    def set_override(cls, key: str, value: Any) -> None:
        """Override a dot-notation key in memory for this process."""
        if not cls._initialized:
            cls.initialize()

        parts = key.split(".")
        node: Dict[str, Any] = cls._cache
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

        logger.info("Config override applied", extra={"config_key": key, "value": value})
