"""Shared helpers for the CLI command groups."""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Type, TypeVar

import typer
import yaml
from pydantic import BaseModel, ValidationError

from ..errors import K3sctlError
from ..modules.k3s.models import load_spec

logger = logging.getLogger("cli")

M = TypeVar('M', bound=BaseModel)

# Option shared by every command that reads a spec file
SPEC_FILE = typer.Option(..., '--file', '-f', exists=True, dir_okay=False, help='YAML spec file')


@contextmanager
def exit_on_error(action: str) -> Iterator[None]:
    """Log a failed operation and exit with status 1."""
    try:
        yield
    except (K3sctlError, ValidationError, yaml.YAMLError, OSError, ValueError) as e:
        logger.error(f"❌ {action} failed: {e}")
        logger.debug("traceback", exc_info=True)
        raise typer.Exit(code=1)


def read_spec(path: Path, model: Type[M]) -> M:
    with exit_on_error(f"loading {path}"):
        return load_spec(path, model)


def echo_yaml(data: Dict[str, Any]) -> None:
    typer.echo(yaml.safe_dump(data, default_flow_style=False, sort_keys=False), nl=False)
