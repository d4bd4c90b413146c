"""k3s server commands."""
from pathlib import Path
from typing import Optional

import typer

from ..modules.k3s import deploy
from ..modules.k3s.models import ServerSpec
from . import SPEC_FILE, echo_yaml, exit_on_error, read_spec

app = typer.Typer(help="Install and manage a single k3s server")


@app.command("create")
def create(file: Path = SPEC_FILE):
    """Install a server and print its token, kubeconfig and cluster auth."""
    spec = read_spec(file, ServerSpec)
    with exit_on_error(f"creating server {spec.auth.host}"):
        state = deploy.create_server(spec)
    echo_yaml(state.to_dict())


@app.command("read")
def read(file: Path = SPEC_FILE):
    """Rebuild server state from the node."""
    spec = read_spec(file, ServerSpec)
    with exit_on_error(f"reading server {spec.auth.host}"):
        state = deploy.read_server(spec)
    echo_yaml(state.to_dict())


@app.command("update")
def update(
    file: Path = SPEC_FILE,
    previous: Optional[Path] = typer.Option(
        None, '--previous', '-p', exists=True, dir_okay=False,
        help='Spec the server was last applied with; unchanged input is a no-op',
    ),
):
    """Push changed config to a running server and restart it."""
    spec = read_spec(file, ServerSpec)
    before = read_spec(previous, ServerSpec) if previous else None
    with exit_on_error(f"updating server {spec.auth.host}"):
        state = deploy.update_server(spec, before)
    if state is None:
        typer.echo("no changes")
        return
    echo_yaml(state.to_dict())


@app.command("delete")
def delete(file: Path = SPEC_FILE):
    """Run the server uninstall script."""
    spec = read_spec(file, ServerSpec)
    with exit_on_error(f"deleting server {spec.auth.host}"):
        deploy.delete_server(spec)
    typer.echo(f"server {spec.auth.host} uninstalled")
