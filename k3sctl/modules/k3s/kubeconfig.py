"""Kubeconfig parsing and endpoint rewriting.

k3s writes a kubeconfig with exactly one cluster, user and context, all named
``default``, pointing at the loopback address. Only the server URL is ever
changed here; every other field is written back untouched.
"""
import base64
import binascii
import copy
import logging
from typing import Any, Dict

import yaml

from ...errors import KubeconfigError

logger = logging.getLogger("k3s.kubeconfig")

KUBE_API_PORT = 6443
DEFAULT_NAME = 'default'


def _named(entries, name: str, kind: str) -> Dict[str, Any]:
    for entry in entries or []:
        if isinstance(entry, dict) and entry.get('name') == name:
            return entry
    raise KubeconfigError(f"kubeconfig has no {kind} named '{name}'")


def _decode(value: str, field: str) -> str:
    if not value:
        return ''
    try:
        return base64.b64decode(value, validate=True).decode('utf-8')
    except (binascii.Error, UnicodeDecodeError) as e:
        raise KubeconfigError(f"kubeconfig field {field} is not valid base64: {e}") from e


def api_server_url(host: str, port: int = KUBE_API_PORT) -> str:
    """``https://host:6443`` for a bare host, ``host:port`` or IPv6 literal."""
    host = host.strip()
    if host.startswith('['):
        host = host[1:host.index(']')]
    elif host.count(':') == 1:
        host = host.split(':', 1)[0]
    if ':' in host:
        host = f"[{host}]"
    return f"https://{host}:{port}"


class ClusterAuth:
    """Read-only view of a kubeconfig's credentials with a mutable server URL."""

    def __init__(self, config: Dict[str, Any]):
        self._config = config
        cluster = _named(config.get('clusters'), DEFAULT_NAME, 'cluster').get('cluster') or {}
        user = _named(config.get('users'), DEFAULT_NAME, 'user').get('user') or {}
        if 'server' not in cluster:
            raise KubeconfigError("kubeconfig cluster 'default' has no server")

        self._cluster = cluster
        self.certificate_authority_data = _decode(
            cluster.get('certificate-authority-data', ''), 'certificate-authority-data'
        )
        self.client_certificate_data = _decode(
            user.get('client-certificate-data', ''), 'client-certificate-data'
        )
        self.client_key_data = _decode(user.get('client-key-data', ''), 'client-key-data')

    @classmethod
    def from_kubeconfig(cls, text: str) -> 'ClusterAuth':
        """Parse kubeconfig text.

        Raises:
            KubeconfigError: If the text is not YAML or lacks the default entries
        """
        if not text or not text.strip():
            raise KubeconfigError("kubeconfig is empty")
        try:
            config = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise KubeconfigError(f"kubeconfig is not valid YAML: {e}") from e
        if not isinstance(config, dict):
            raise KubeconfigError("kubeconfig is not a mapping")
        return cls(copy.deepcopy(config))

    @property
    def server(self) -> str:
        return self._cluster['server']

    def update_host(self, host: str) -> None:
        """Point the default cluster at ``host`` on the API port."""
        self._cluster['server'] = api_server_url(host)
        logger.debug("kubeconfig server set to %s", self._cluster['server'])

    def kubeconfig(self) -> str:
        """Serialize the (possibly rewritten) document."""
        return yaml.safe_dump(self._config, default_flow_style=False, sort_keys=False)

    def to_dict(self) -> Dict[str, str]:
        return {
            'server': self.server,
            'certificate_authority_data': self.certificate_authority_data,
            'client_certificate_data': self.client_certificate_data,
            'client_key_data': self.client_key_data,
        }


def update_kubeconfig_host(text: str, host: str) -> str:
    """Rewrite the server host of kubeconfig ``text`` and return the new text."""
    auth = ClusterAuth.from_kubeconfig(text)
    auth.update_host(host)
    return auth.kubeconfig()
