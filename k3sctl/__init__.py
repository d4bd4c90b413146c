"""k3sctl - k3s node orchestration over SSH."""

__version__ = '0.1.0'
