"""Configuration loading from an optional YAML file, env vars, and CLI args.

Precedence (lowest to highest): dataclass defaults, YAML, environment, CLI.

Example YAML:

    analysis:
      interval_ms: 500
      top_queries: 12
      histogram_bins: 20
    logging:
      level: DEBUG
    output:
      format: json
"""

import logging
import os
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("text", "json")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Config:
    interval_ms: float = 1000
    top_queries: int = 12
    histogram_bins: int = 20
    log_level: str = "INFO"
    output: str = "text"


def load_yaml_config(path: str | None) -> dict:
    """Load a YAML config file. Returns an empty dict if there is no usable file."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as e:
        logger.warning("Invalid YAML in %s, using defaults: %s", path, e)
        return {}

    if not isinstance(data, dict):
        logger.warning("Config file %s is not a mapping, using defaults", path)
        return {}
    logger.info("Loaded YAML config from %s", path)
    return data


def _section(data: dict, name: str) -> dict:
    value = data.get(name) or {}
    return value if isinstance(value, dict) else {}


def _pick(*candidates):
    """First candidate that is not None."""
    for c in candidates:
        if c is not None:
            return c
    return None


def load_config(yaml_data: dict | None = None, cli_args=None, environ=None) -> Config:
    """Build a validated Config. Raises ValueError on out-of-range values."""
    yaml_data = yaml_data or {}
    environ = os.environ if environ is None else environ
    analysis = _section(yaml_data, "analysis")

    interval_ms = float(_pick(
        getattr(cli_args, "interval_ms", None),
        environ.get("QUESTLOG_INTERVAL_MS"),
        analysis.get("interval_ms"),
        Config.interval_ms,
    ))
    top_queries = int(_pick(
        getattr(cli_args, "top", None),
        environ.get("QUESTLOG_TOP_QUERIES"),
        analysis.get("top_queries"),
        Config.top_queries,
    ))
    histogram_bins = int(_pick(
        getattr(cli_args, "bins", None),
        environ.get("QUESTLOG_HISTOGRAM_BINS"),
        analysis.get("histogram_bins"),
        Config.histogram_bins,
    ))
    log_level = str(_pick(
        getattr(cli_args, "log_level", None),
        environ.get("QUESTLOG_LOG_LEVEL"),
        _section(yaml_data, "logging").get("level"),
        Config.log_level,
    )).upper()
    output = str(_pick(
        getattr(cli_args, "output", None),
        _section(yaml_data, "output").get("format"),
        Config.output,
    )).lower()

    if interval_ms <= 0:
        raise ValueError(f"interval_ms must be positive, got {interval_ms}")
    if top_queries <= 0:
        raise ValueError(f"top_queries must be positive, got {top_queries}")
    if histogram_bins <= 0:
        raise ValueError(f"histogram_bins must be positive, got {histogram_bins}")
    if log_level not in LOG_LEVELS:
        raise ValueError(f"Unknown log level: {log_level}")
    if output not in OUTPUT_FORMATS:
        raise ValueError(f"Unknown output format: {output}")

    return Config(
        interval_ms=interval_ms,
        top_queries=top_queries,
        histogram_bins=histogram_bins,
        log_level=log_level,
        output=output,
    )
