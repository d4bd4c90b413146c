"""
Remote node management modules.
"""
from .ssh import NodeAuth, SSHConnection, connect

__all__ = [
    'NodeAuth',
    'SSHConnection',
    'connect',
]
