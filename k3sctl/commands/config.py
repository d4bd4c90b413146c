"""Local config rendering, no node access."""
from pathlib import Path
from typing import List, Optional

import typer

from ..modules.k3s.utils import dump_yaml, parse_yaml_documents, render_config
from . import exit_on_error

app = typer.Typer(help="Render k3s config files locally")


@app.command("render")
def render(
    files: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help='Config layers, later files win'),
    data_dir: Optional[str] = typer.Option(None, '--data-dir', help='k3s data directory'),
):
    """Deep-merge config layers and print the resulting config.yaml."""
    with exit_on_error("rendering config"):
        merged = parse_yaml_documents(*(path.read_text() for path in files))
        typer.echo(render_config(dump_yaml(merged), data_dir=data_dir), nl=False)
