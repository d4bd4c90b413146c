"""
k3s node orchestration over SSH.

This package installs, updates, inspects and removes k3s servers and agents
on remote hosts.

Key Features:
- Server and agent lifecycle (preinstall, install, update, uninstall, status)
- State rebuild from a node's own files
- Highly available server sets bootstrapped concurrently
- Layered config and registry merging
- Kubeconfig harvesting with the API host rewritten
"""

from .agent import K3sAgent
from .component import K3sComponent, NodeStatus
from .deploy import (
    AgentState,
    KubeconfigState,
    ServerState,
    create_agent,
    create_ha,
    create_server,
    delete_agent,
    delete_ha,
    delete_server,
    read_agent,
    read_ha,
    read_kubeconfig,
    read_server,
    update_agent,
    update_server,
)
from .ha import HaCluster, HaNode, HaResult, NodeResult
from .kubeconfig import ClusterAuth, update_kubeconfig_host
from .models import AgentSpec, HaServerSpec, KubeconfigSpec, ServerSpec, load_spec
from .server import K3sServer
from .utils import merge_configs, merge_dicts, render_config

__all__ = [
    # Components
    'K3sComponent',
    'K3sServer',
    'K3sAgent',
    'NodeStatus',
    # HA
    'HaCluster',
    'HaNode',
    'HaResult',
    'NodeResult',
    # Handlers
    'ServerState',
    'AgentState',
    'KubeconfigState',
    'create_server',
    'read_server',
    'update_server',
    'delete_server',
    'create_agent',
    'read_agent',
    'update_agent',
    'delete_agent',
    'read_kubeconfig',
    'create_ha',
    'read_ha',
    'delete_ha',
    # Input models
    'ServerSpec',
    'AgentSpec',
    'HaServerSpec',
    'KubeconfigSpec',
    'load_spec',
    # Config helpers
    'ClusterAuth',
    'update_kubeconfig_host',
    'merge_dicts',
    'merge_configs',
    'render_config',
]
