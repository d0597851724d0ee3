"""
Layered YAML configuration.

- `config/default.yaml` (checked in)
- `config/config.yaml` (local overrides)
- plus any explicitly provided `--config` path (treated as overrides)
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional, Tuple

import yaml

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def _read_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering relative to the directory of `config_path`.

    Raises:
        OSError / yaml.YAMLError: if a present file cannot be read or parsed.
    """
    config_dir = os.path.dirname(config_path)
    base_path = os.path.join(config_dir, "default.yaml")
    local_overrides_path = os.path.join(config_dir, "config.yaml")

    merged: Dict[str, Any] = {}
    if os.path.exists(base_path):
        merged = _read_yaml(base_path)
    if os.path.exists(local_overrides_path):
        merged = _deep_merge(merged, _read_yaml(local_overrides_path))

    # Finally apply explicit config_path if it's not one of the files above
    explicit = os.path.abspath(config_path)
    if os.path.exists(config_path) and explicit not in (
        os.path.abspath(base_path),
        os.path.abspath(local_overrides_path),
    ):
        merged = _deep_merge(merged, _read_yaml(config_path))

    logging.debug(f"Configuration loaded from {config_dir or '.'}")
    return merged


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['storage', 'detector', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    storage = config.get('storage') or {}
    if 'database_path' not in storage:
        return False, "Missing storage.database_path"
    if not isinstance(storage['database_path'], str) or not storage['database_path']:
        return False, "storage.database_path must be a non-empty string"

    detector = config.get('detector') or {}
    if not isinstance(detector.get('endpoint', ''), str) or not detector.get('endpoint'):
        return False, "detector.endpoint must be a non-empty string"
    timeout = detector.get('timeout_seconds', 30)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        return False, "detector.timeout_seconds must be a positive number"
    if 'max_tokens' in detector:
        if not isinstance(detector['max_tokens'], int) or detector['max_tokens'] <= 0:
            return False, "detector.max_tokens must be a positive integer"
    if 'strict_parse' in detector and not isinstance(detector['strict_parse'], bool):
        return False, "detector.strict_parse must be a boolean"

    # Optional review settings
    review = config.get('review') or {}
    if 'marker_size' in review:
        size = review['marker_size']
        if isinstance(size, bool) or not isinstance(size, (int, float)) or size <= 0:
            return False, "review.marker_size must be a positive number"
    if 'ttl_seconds' in review:
        ttl = review['ttl_seconds']
        if isinstance(ttl, bool) or not isinstance(ttl, (int, float)) or ttl <= 0:
            return False, "review.ttl_seconds must be a positive number"
    if 'max_open' in review:
        max_open = review['max_open']
        if isinstance(max_open, bool) or not isinstance(max_open, int) or max_open <= 0:
            return False, "review.max_open must be a positive integer"
    placeholder = review.get('placeholder') or {}
    for key in ('spacing', 'size'):
        if key in placeholder:
            value = placeholder[key]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                return False, f"review.placeholder.{key} must be a positive number"

    web = config.get('web') or {}
    if 'port' in web:
        port = web['port']
        if not isinstance(port, int) or not (0 < port < 65536):
            return False, "web.port must be an integer between 1 and 65535"

    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None
