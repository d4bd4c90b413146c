"""k3s agent commands."""
from pathlib import Path
from typing import Optional

import typer

from ..modules.k3s import deploy
from ..modules.k3s.models import AgentSpec
from . import SPEC_FILE, echo_yaml, exit_on_error, read_spec

app = typer.Typer(help="Join and manage k3s agents")


@app.command("create")
def create(file: Path = SPEC_FILE):
    """Install an agent and join it to the server in the spec."""
    spec = read_spec(file, AgentSpec)
    with exit_on_error(f"creating agent {spec.auth.host}"):
        state = deploy.create_agent(spec)
    echo_yaml(state.to_dict())


@app.command("read")
def read(file: Path = SPEC_FILE):
    """Rebuild agent state from the node."""
    spec = read_spec(file, AgentSpec)
    with exit_on_error(f"reading agent {spec.auth.host}"):
        state = deploy.read_agent(spec)
    echo_yaml(state.to_dict())


@app.command("update")
def update(
    file: Path = SPEC_FILE,
    previous: Optional[Path] = typer.Option(
        None, '--previous', '-p', exists=True, dir_okay=False,
        help='Spec the agent was last applied with; unchanged input is a no-op',
    ),
):
    """Push changed config to a running agent and restart it."""
    spec = read_spec(file, AgentSpec)
    before = read_spec(previous, AgentSpec) if previous else None
    with exit_on_error(f"updating agent {spec.auth.host}"):
        state = deploy.update_agent(spec, before)
    if state is None:
        typer.echo("no changes")
        return
    echo_yaml(state.to_dict())


@app.command("delete")
def delete(
    file: Path = SPEC_FILE,
    allow_delete_err: Optional[bool] = typer.Option(
        None, '--allow-delete-err/--no-allow-delete-err',
        help='Continue uninstalling when the node cannot be removed from the cluster',
    ),
):
    """Remove the node from the cluster and run the agent uninstall script."""
    spec = read_spec(file, AgentSpec)
    if allow_delete_err is not None:
        spec.allow_delete_err = allow_delete_err
    with exit_on_error(f"deleting agent {spec.auth.host}"):
        deploy.delete_agent(spec)
    typer.echo(f"agent {spec.auth.host} uninstalled")
