"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ──────────────────────────────────────────
#
# Later layers override earlier ones:
#
#   1. config/config.yaml  -- Static defaults checked into the repo
#   2. .env file           -- Local developer overrides (not committed)
#   3. Environment vars    -- Set at deploy time
#
# load_config() reads the YAML file, then deep-merges the Settings-derived
# values on top.
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

import yaml

from bookrouter.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.
        settings: Settings instance to merge; a fresh one is built when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "llm": {
            "available_providers": settings.get_available_llm_providers(),
            "timeout": settings.llm_timeout,
        },
        "catalog": {
            "backend": settings.catalog_backend,
            "json_path": settings.catalog_json_path,
            "chromadb_persist_dir": settings.chromadb_persist_dir,
            "chromadb_collection": settings.chromadb_collection,
        },
        "routing": settings.routing_thresholds().model_dump(),
        "search": {
            "serper_configured": bool(settings.serper_api_key),
        },
        "cache": {
            "max_size": settings.cache_max_size,
            "ttl": settings.cache_ttl,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
