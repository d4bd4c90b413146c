"""Utility functions for k3s configuration documents."""

import copy
import io
import logging
from typing import Any, Dict, Optional

import yaml
from dotenv import dotenv_values

logger = logging.getLogger("k3s.utils")

# Default k3s data directory, also used by the config renderer
DATA_DIR = '/var/lib/rancher/k3s'


def merge_dicts(base: Dict[Any, Any], override: Dict[Any, Any]) -> Dict[Any, Any]:
    """Recursively merge two dictionaries.
    
    Nested mappings are merged key by key; any other value in ``override``
    (scalars, lists) replaces the one in ``base`` outright.
    
    Args:
        base: Base dictionary
        override: Dictionary with values to override
        
    Returns:
        dict: Merged dictionary
    """
    result = copy.deepcopy(base) if base else {}
    for key, value in (override or {}).items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def merge_configs(*documents: Optional[Dict[Any, Any]]) -> Dict[Any, Any]:
    """Fold any number of mappings left to right with ``merge_dicts``."""
    result: Dict[Any, Any] = {}
    for document in documents:
        result = merge_dicts(result, document or {})
    return result


def parse_yaml(text: Optional[str]) -> Dict[Any, Any]:
    """Parse a YAML mapping; empty or missing input gives an empty dict.
    
    Raises:
        yaml.YAMLError: If the text is not valid YAML
        ValueError: If the document is not a mapping
    """
    if text is None or not text.strip():
        return {}
    data = yaml.safe_load(text)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"expected a YAML mapping, got {type(data).__name__}")
    return data


def parse_yaml_documents(*texts: Optional[str]) -> Dict[Any, Any]:
    """Parse several YAML texts and deep-merge them, later texts winning."""
    return merge_configs(*(parse_yaml(text) for text in texts))


def dump_yaml(data: Dict[Any, Any]) -> str:
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)


def render_config(config_text: Optional[str], data_dir: Optional[str] = None) -> str:
    """Render a k3s config file with ``data-dir`` filled in.
    
    Args:
        config_text: YAML encoded k3s config (may be empty)
        data_dir: Where k3s stores its data (default: /var/lib/rancher/k3s)
        
    Returns:
        str: YAML text of the config file
    """
    config = parse_yaml(config_text)
    config['data-dir'] = data_dir or config.get('data-dir') or DATA_DIR
    return dump_yaml(config)


def parse_env_file(text: str) -> Dict[str, str]:
    """Parse a systemd EnvironmentFile into a dict.

    Quoting, inline comments and `export` prefixes follow dotenv rules;
    keys without a value map to an empty string.
    """
    return {key: value or '' for key, value in dotenv_values(stream=io.StringIO(text)).items()}
