"""Highly available server set commands."""
from pathlib import Path
from typing import Callable

import typer

from ..errors import HaBootstrapError
from ..modules.k3s import deploy
from ..modules.k3s.ha import HaResult
from ..modules.k3s.models import HaServerSpec
from . import SPEC_FILE, echo_yaml, exit_on_error, logger, read_spec

app = typer.Typer(help="Bootstrap and manage an HA k3s control plane")


def result_dict(result: HaResult) -> dict:
    return {
        'server': result.server,
        'token': result.token,
        'kubeconfig': result.kubeconfig,
        'nodes': [
            {
                'index': node.index,
                'host': node.host,
                'active': node.active,
                'error': str(node.error) if node.error else None,
            }
            for node in result.nodes
        ],
    }


def _run(action: str, handler: Callable[..., HaResult], spec: HaServerSpec) -> None:
    with exit_on_error(f"{action} HA servers"):
        try:
            result = handler(spec)
        except HaBootstrapError as e:
            # Partial results still carry the token and every node's outcome
            echo_yaml(result_dict(e.result))
            logger.error(f"❌ {action} HA servers failed: {e}")
            raise typer.Exit(code=1)
    echo_yaml(result_dict(result))


@app.command("create")
def create(file: Path = SPEC_FILE):
    """Initialize the cluster on the first node, then join the rest concurrently."""
    _run("creating", deploy.create_ha, read_spec(file, HaServerSpec))


@app.command("read")
def read(file: Path = SPEC_FILE):
    """Report the service status of every node."""
    _run("reading", deploy.read_ha, read_spec(file, HaServerSpec))


@app.command("delete")
def delete(file: Path = SPEC_FILE):
    """Uninstall k3s from every node."""
    _run("deleting", deploy.delete_ha, read_spec(file, HaServerSpec))
