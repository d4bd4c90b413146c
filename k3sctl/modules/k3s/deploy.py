"""Create, read, update and delete handlers for servers, agents and HA sets.

Each handler opens its own connection from the spec's auth block, drives a
component and returns a plain state object that the CLI prints.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, Optional

from ...errors import K3sctlError
from ..ssh import NodeAuth, connect
from .agent import K3sAgent
from .ha import HaCluster, HaResult
from .kubeconfig import ClusterAuth, api_server_url, update_kubeconfig_host
from .models import AgentSpec, HaServerSpec, ServerSpec
from .server import K3sServer

logger = logging.getLogger("k3s.deploy")

Connector = Callable[[NodeAuth], Any]


@dataclass
class ServerState:
    host: str
    server: str = ''
    token: str = ''
    kubeconfig: str = ''
    active: bool = False
    cluster_auth: Dict[str, str] = field(default_factory=dict)
    jwks: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AgentState:
    host: str
    server: str = ''
    token: str = ''
    active: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class KubeconfigState:
    kubeconfig: str = ''
    cluster_auth: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_server(spec: ServerSpec) -> K3sServer:
    server = K3sServer(
        config=spec.config_map(),
        registry=spec.registry_map(),
        version=spec.version,
        bin_dir=spec.bin_dir,
    )
    ha = spec.highly_available
    if ha is not None:
        server.add_ha(ha.cluster_init, token=ha.token, server=ha.server)
    if spec.oidc is not None:
        server.add_oidc(**spec.oidc.model_dump())
    return server


def build_agent(spec: AgentSpec) -> K3sAgent:
    return K3sAgent(
        config=spec.config_map(),
        registry=spec.registry_map(),
        version=spec.version,
        bin_dir=spec.bin_dir,
        token=spec.token,
        server=spec.server,
    )


def _server_state(server: K3sServer, conn, with_jwks: bool) -> ServerState:
    status = server.status(conn)
    state = ServerState(
        host=conn.host,
        server=api_server_url(conn.host),
        token=server.token,
        kubeconfig=server.kubeconfig,
        active=status.active,
    )
    if server.kubeconfig:
        auth = ClusterAuth.from_kubeconfig(server.kubeconfig)
        state.cluster_auth = auth.to_dict()
        state.server = auth.server
    if with_jwks and status.active:
        state.jwks = server.jwks(conn)
    return state


def _agent_state(agent: K3sAgent, conn) -> AgentState:
    return AgentState(
        host=conn.host,
        server=agent.server,
        token=agent.token,
        active=agent.status(conn).active,
    )


# -- server -------------------------------------------------------------


def create_server(spec: ServerSpec, connector: Connector = connect) -> ServerState:
    """Install a server and harvest its token and kubeconfig."""
    conn = connector(spec.auth.to_auth())
    server = build_server(spec)
    server.preinstall(conn)
    server.install(conn)
    state = _server_state(server, conn, with_jwks=spec.oidc is not None)
    logger.info("[%s] server created, active=%s", conn.host, state.active)
    return state


def read_server(spec: ServerSpec, connector: Connector = connect) -> ServerState:
    conn = connector(spec.auth.to_auth())
    server = build_server(spec)
    server.resync(conn)
    return _server_state(server, conn, with_jwks=spec.oidc is not None)


def server_changed(spec: ServerSpec, previous: ServerSpec) -> bool:
    return (
        spec.config_map() != previous.config_map()
        or spec.registry_map() != previous.registry_map()
        or spec.oidc != previous.oidc
        or spec.highly_available != previous.highly_available
    )


def update_server(
    spec: ServerSpec,
    previous: Optional[ServerSpec] = None,
    connector: Connector = connect,
) -> Optional[ServerState]:
    """Push new config to a running server.

    Returns None without touching the node when ``previous`` is given and
    nothing relevant changed.
    """
    if previous is not None and not server_changed(spec, previous):
        logger.info("[%s] server config unchanged, nothing to do", spec.auth.host)
        return None
    conn = connector(spec.auth.to_auth())
    server = build_server(spec)
    server.update(conn)
    server.resync_role(conn)
    return _server_state(server, conn, with_jwks=spec.oidc is not None)


def delete_server(spec: ServerSpec, connector: Connector = connect) -> None:
    conn = connector(spec.auth.to_auth())
    build_server(spec).uninstall(conn)


# -- agent --------------------------------------------------------------


def create_agent(spec: AgentSpec, connector: Connector = connect) -> AgentState:
    conn = connector(spec.auth.to_auth())
    agent = build_agent(spec)
    agent.preinstall(conn)
    agent.install(conn)
    state = _agent_state(agent, conn)
    logger.info("[%s] agent created, active=%s", conn.host, state.active)
    return state


def read_agent(spec: AgentSpec, connector: Connector = connect) -> AgentState:
    conn = connector(spec.auth.to_auth())
    agent = build_agent(spec)
    agent.resync(conn)
    return _agent_state(agent, conn)


def agent_changed(spec: AgentSpec, previous: AgentSpec) -> bool:
    return spec.config_map() != previous.config_map() or spec.registry_map() != previous.registry_map()


def update_agent(
    spec: AgentSpec,
    previous: Optional[AgentSpec] = None,
    connector: Connector = connect,
) -> Optional[AgentState]:
    """Push new config to a running agent, or return None when unchanged."""
    if previous is not None and not agent_changed(spec, previous):
        logger.info("[%s] agent config unchanged, nothing to do", spec.auth.host)
        return None
    conn = connector(spec.auth.to_auth())
    agent = build_agent(spec)
    agent.update(conn)
    return _agent_state(agent, conn)


def delete_agent(spec: AgentSpec, connector: Connector = connect) -> None:
    """Remove the agent's node object from the cluster, then uninstall it."""
    conn = connector(spec.auth.to_auth())
    build_agent(spec).uninstall(
        conn,
        kubeconfig=spec.kubeconfig or '',
        allow_delete_err=spec.allow_delete_err,
    )


# -- kubeconfig ---------------------------------------------------------


def read_kubeconfig(
    auth: NodeAuth,
    hostname: Optional[str] = None,
    allow_empty: bool = False,
    connector: Connector = connect,
) -> KubeconfigState:
    """Fetch a server's kubeconfig, pointed at ``hostname`` or the SSH host.

    With ``allow_empty``, a node that cannot be read (not installed yet,
    unreachable) yields an empty state instead of an error.
    """
    try:
        conn = connector(auth)
        server = K3sServer()
        server.resync(conn)
    except K3sctlError as e:
        if not allow_empty:
            raise
        logger.warning("[%s] kubeconfig unavailable, returning empty: %s", auth.host, e)
        return KubeconfigState()

    kubeconfig = server.kubeconfig
    if hostname:
        kubeconfig = update_kubeconfig_host(kubeconfig, hostname)
    return KubeconfigState(
        kubeconfig=kubeconfig,
        cluster_auth=ClusterAuth.from_kubeconfig(kubeconfig).to_dict(),
    )


# -- HA -----------------------------------------------------------------


def build_ha(spec: HaServerSpec, connector: Connector = connect) -> HaCluster:
    return HaCluster(
        spec.ha_nodes(),
        config=spec.config_map(),
        registry=spec.registry_map(),
        bin_dir=spec.bin_dir,
        version=spec.version,
        connector=connector,
    )


def create_ha(spec: HaServerSpec, connector: Connector = connect) -> HaResult:
    return build_ha(spec, connector).create()


def read_ha(spec: HaServerSpec, connector: Connector = connect) -> HaResult:
    return build_ha(spec, connector).read()


def delete_ha(spec: HaServerSpec, connector: Connector = connect) -> HaResult:
    return build_ha(spec, connector).delete()
