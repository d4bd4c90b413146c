"""Highly available k3s server bootstrap.

The first node initializes embedded etcd and mints the cluster token; every
other node then joins it concurrently. Quorum sizing (an odd count of three
or more) is left to the caller.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ...errors import ComponentError, HaBootstrapError, K3sctlError
from ..ssh import NodeAuth, connect
from .kubeconfig import api_server_url
from .server import K3sServer

logger = logging.getLogger("k3s.ha")


@dataclass
class HaNode:
    """One member of an HA server set."""
    auth: NodeAuth
    bin_dir: Optional[str] = None
    tls_san: Optional[str] = None

    @property
    def host(self) -> str:
        return self.auth.host


@dataclass
class NodeResult:
    index: int
    host: str
    active: bool = False
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class HaResult:
    token: str = ''
    kubeconfig: str = ''
    server: str = ''
    nodes: List[NodeResult] = field(default_factory=list)

    @property
    def failed(self) -> List[NodeResult]:
        return [node for node in self.nodes if not node.ok]

    @property
    def active(self) -> Dict[str, bool]:
        return {node.host: node.active for node in self.nodes}


class HaCluster:
    """Drives a list of server nodes as one HA control plane.

    Index 0 is always the cluster-init node.
    """

    def __init__(
        self,
        nodes: List[HaNode],
        config: Optional[Dict[str, Any]] = None,
        registry: Optional[Dict[str, Any]] = None,
        bin_dir: Optional[str] = None,
        version: Optional[str] = None,
        connector: Callable = connect,
        server_factory: Callable[..., K3sServer] = K3sServer,
    ):
        if not nodes:
            raise ValueError("at least one node is required")
        self.nodes = list(nodes)
        self.config = config or {}
        self.registry = registry or {}
        self.bin_dir = bin_dir
        self.version = version
        self.connector = connector
        self.server_factory = server_factory

    def _connections(self) -> list:
        # Built up front so a bad descriptor fails before any node is touched
        return [self.connector(node.auth) for node in self.nodes]

    def _server(self, node: HaNode) -> K3sServer:
        # Each server deep-copies the shared config, so concurrent joiners never share a map
        server = self.server_factory(
            config=self.config,
            registry=self.registry,
            version=self.version,
            bin_dir=node.bin_dir or self.bin_dir,
        )
        if node.tls_san:
            server.add_tls_san(node.tls_san)
        return server

    @staticmethod
    def _bootstrap(server: K3sServer, conn) -> bool:
        server.preinstall(conn)
        server.install(conn)
        status = server.status(conn)
        if not status.active:
            raise ComponentError(f"server on {conn.host} is not active after install")
        return True

    def _fan_out(self, indices: List[int], task: Callable[[int], bool]) -> List[NodeResult]:
        """Run ``task`` for every index concurrently and collect every outcome."""
        if not indices:
            return []
        slots: List[Optional[NodeResult]] = [None] * len(indices)

        def run(slot: int, index: int) -> None:
            host = self.nodes[index].host
            try:
                slots[slot] = NodeResult(index, host, active=bool(task(index)))
            except Exception as e:
                logger.error("[%s] node[%d] failed: %s", host, index, e, exc_info=not isinstance(e, K3sctlError))
                slots[slot] = NodeResult(index, host, active=False, error=e)

        with ThreadPoolExecutor(max_workers=len(indices)) as executor:
            futures = [executor.submit(run, slot, index) for slot, index in enumerate(indices)]
            for future in futures:
                future.result()
        return slots

    def create(self) -> HaResult:
        """Bootstrap node 0, then join the rest concurrently.

        Raises:
            SSHConnectionError: If any node's connection cannot be built
            ComponentError: If the first node fails; no other node is touched
            HaBootstrapError: If any joining node fails, with every node's result
        """
        conns = self._connections()
        first = self.nodes[0]

        init_server = self._server(first)
        init_server.add_ha(cluster_init=True)
        logger.info("[%s] bootstrapping cluster-init server", first.host)
        try:
            self._bootstrap(init_server, conns[0])
        except K3sctlError as e:
            raise ComponentError(f"creating first server {first.host}: {e}") from e

        token = init_server.token
        result = HaResult(
            token=token,
            kubeconfig=init_server.kubeconfig,
            server=api_server_url(first.host),
            nodes=[NodeResult(0, first.host, active=True)],
        )

        def join(index: int) -> bool:
            server = self._server(self.nodes[index])
            server.add_ha(cluster_init=False, token=token, server=first.host)
            logger.info("[%s] joining server to %s", self.nodes[index].host, result.server)
            return self._bootstrap(server, conns[index])

        result.nodes.extend(self._fan_out(list(range(1, len(self.nodes))), join))

        if result.failed:
            raise HaBootstrapError(result)
        return result

    def read(self) -> HaResult:
        """Service status of every node."""
        conns = self._connections()

        def status(index: int) -> bool:
            return self._server(self.nodes[index]).status(conns[index]).active

        result = HaResult(
            server=api_server_url(self.nodes[0].host),
            nodes=self._fan_out(list(range(len(self.nodes))), status),
        )
        if result.failed:
            raise HaBootstrapError(result)
        return result

    def delete(self) -> HaResult:
        """Run the uninstall script on every node."""
        conns = self._connections()

        def uninstall(index: int) -> bool:
            self._server(self.nodes[index]).uninstall(conns[index])
            return False

        result = HaResult(nodes=self._fan_out(list(range(len(self.nodes))), uninstall))
        if result.failed:
            raise HaBootstrapError(result)
        return result
