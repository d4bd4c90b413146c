"""k3s agent role."""

import logging
from typing import List

from ...errors import CommandError, MissingSecretError, NodeDeleteError
from ...utils.kube import delete_node_by_address
from .component import K3sComponent

logger = logging.getLogger("k3s.agent")


class K3sAgent(K3sComponent):
    """A k3s agent (worker) node joined to ``server`` with ``token``."""

    role = 'agent'
    service_name = 'k3s-agent'
    uninstall_script = 'k3s-agent-uninstall.sh'

    def __init__(self, *args, token: str = '', server: str = '', **kwargs):
        super().__init__(*args, **kwargs)
        self.token = token
        self.server = server

    def install_env(self):
        env = super().install_env()
        env['K3S_URL'] = self.server
        env['K3S_TOKEN'] = self.token
        return env

    def node_addresses(self, conn) -> List[str]:
        """The SSH host plus every address the node reports for itself."""
        try:
            reported = conn.run("hostname -I").split()
        except CommandError as e:
            raise NodeDeleteError(f"resolving addresses of {conn.host}: {e}") from e
        addresses = [conn.host]
        addresses.extend(addr for addr in reported if addr not in addresses)
        return addresses

    def remove_from_cluster(self, conn, kubeconfig: str) -> str:
        return delete_node_by_address(kubeconfig, self.node_addresses(conn))

    def uninstall(self, conn, kubeconfig: str = '', allow_delete_err: bool = False) -> None:
        """Delete the node from the cluster, then run the agent uninstall script.

        Args:
            conn: Connection to the agent node
            kubeconfig: Kubeconfig text for the cluster API
            allow_delete_err: Log and continue when the node cannot be deleted
        """
        try:
            name = self.remove_from_cluster(conn, kubeconfig)
            logger.info("[%s] removed node %s from the cluster", conn.host, name)
        except NodeDeleteError as e:
            if not allow_delete_err:
                raise
            logger.warning("[%s] could not remove node from cluster, continuing: %s", conn.host, e)

        self.run_uninstall_script(conn)

    def resync_role(self, conn) -> None:
        env = self.read_env(conn)
        missing = [key for key in ('K3S_TOKEN', 'K3S_URL') if not env.get(key)]
        if missing:
            raise MissingSecretError(
                f"{', '.join(missing)} not found in {self.env_file_path} on {conn.host}"
            )
        self.token = env['K3S_TOKEN']
        self.server = env['K3S_URL']
