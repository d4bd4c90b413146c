"""Utility functions and helpers for the k3sctl application."""
import re
from typing import Any

from ..config import Config

REDACTED = "[REDACTED]"


def is_sensitive(key: Any) -> bool:
    key = str(key).lower()
    return any(redact_key in key for redact_key in Config.REDACT_KEYS)


def redact_sensitive_data(data: Any) -> Any:
    """Recursively redact secrets from a k3s config or registry map.

    Mapping values under sensitive keys are replaced, and so are the values
    of ``key=value`` flag strings such as ``etcd-s3-secret-key=...`` inside
    argument lists.

    Args:
        data: Input data that might contain sensitive information

    Returns:
        Data with sensitive values redacted
    """
    if isinstance(data, dict):
        return {k: REDACTED if is_sensitive(k) else redact_sensitive_data(v) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return [redact_sensitive_data(item) for item in data]
    if isinstance(data, str) and '=' in data:
        flag, _, _ = data.partition('=')
        if is_sensitive(flag):
            return f"{flag}={REDACTED}"
    return data


# NAME=value assignments in a shell command line, value optionally quoted
_ASSIGNMENT = re.compile(r"""(?P<key>[A-Za-z_][\w.-]*)=(?P<value>'[^']*'|"[^"]*"|\S+)""")


def redact_command(command: str) -> str:
    """Mask secret ``NAME=value`` assignments such as ``K3S_TOKEN=...`` in a command line."""
    def _mask(match):
        if is_sensitive(match.group('key')):
            return f"{match.group('key')}={REDACTED}"
        return match.group(0)

    return _ASSIGNMENT.sub(_mask, command)
