"""Exception hierarchy for k3sctl."""
from typing import Optional

from .utils import redact_command


class K3sctlError(Exception):
    """Base class for every error raised by k3sctl."""


class SSHConnectionError(K3sctlError, ConnectionError):
    """Dialing, authenticating or opening a session on a node failed."""


class CommandError(K3sctlError, RuntimeError):
    """A remote command exited non-zero or its session broke mid-run.

    Secret assignments in ``command`` are masked before it is stored.
    """

    def __init__(self, command: str, exit_status: Optional[int], output: str = ""):
        self.command = redact_command(command)
        self.exit_status = exit_status
        self.output = output
        message = f"cannot run cmd '{self.command}'"
        if exit_status is not None:
            message += f": exited with status {exit_status}"
        if output:
            message += f": {output.strip()}"
        super().__init__(message)


class KubeconfigError(K3sctlError, ValueError):
    """A kubeconfig document could not be parsed or lacks the default entries."""


class MissingSecretError(K3sctlError):
    """A value required to rebuild component state is absent on the node."""


class ComponentError(K3sctlError, RuntimeError):
    """A lifecycle step failed on a single node."""


class NodeDeleteError(K3sctlError):
    """The node object could not be removed from the live cluster."""


class HaBootstrapError(K3sctlError):
    """One or more nodes of an HA cluster failed.

    ``result`` carries every node's outcome, failed or not.
    """

    def __init__(self, result):
        self.result = result
        failed = [n for n in result.nodes if n.error is not None]
        lines = [f"{len(failed)} of {len(result.nodes)} nodes failed:"]
        for node in failed:
            lines.append(f"  node[{node.index}] {node.host}: {node.error}")
        super().__init__("\n".join(lines))
