import logging

import typer

from k3sctl.commands import agent, config, ha, kubeconfig, server
from k3sctl.config import Config
from k3sctl.logging import setup_logger

app = typer.Typer(help="k3sctl - install and manage k3s nodes over SSH.")


def setup_logging(debug_mode: bool = False):
    """Configure logging based on debug mode."""
    setup_logger("", logging.DEBUG if debug_mode else None)


# Add all command groups
app.add_typer(server.app, name="server")
app.add_typer(agent.app, name="agent")
app.add_typer(ha.app, name="ha")
app.add_typer(kubeconfig.app, name="kubeconfig")
app.add_typer(config.app, name="config")


# Global options callback
@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """k3sctl - install and manage k3s nodes over SSH."""
    Config.validate()
    setup_logging(debug)
    if debug:
        logging.debug("Debug mode enabled")


if __name__ == "__main__":
    app()
