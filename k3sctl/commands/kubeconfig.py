"""Kubeconfig retrieval."""
from pathlib import Path
from typing import Optional

import typer

from ..modules.k3s import deploy
from ..modules.k3s.models import KubeconfigSpec
from . import SPEC_FILE, echo_yaml, exit_on_error, read_spec

app = typer.Typer(help="Fetch a server's kubeconfig")


@app.command("get")
def get(
    file: Path = SPEC_FILE,
    hostname: Optional[str] = typer.Option(None, '--hostname', help='Host to put in the server URL'),
    allow_empty: bool = typer.Option(False, '--allow-empty', help='Print an empty result if the node cannot be read'),
    raw: bool = typer.Option(False, '--raw', help='Print only the kubeconfig document'),
):
    """Read the kubeconfig from a server, rewritten to point at its host."""
    spec = read_spec(file, KubeconfigSpec)
    with exit_on_error(f"reading kubeconfig from {spec.auth.host}"):
        state = deploy.read_kubeconfig(
            spec.auth.to_auth(),
            hostname=hostname or spec.hostname,
            allow_empty=allow_empty or spec.allow_empty,
        )
    if raw:
        typer.echo(state.kubeconfig, nl=False)
        return
    echo_yaml(state.to_dict())
