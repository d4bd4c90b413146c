"""k3s component lifecycle shared by servers and agents.

A component drives one remote node through
preinstall -> install -> (update)* -> uninstall, and can rebuild its own
state from the node with ``resync``. Instances hold no connection; every
operation takes the connection it should use.
"""

import copy
import logging
import shlex
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import yaml

from ...config import Config
from ...errors import CommandError, ComponentError, K3sctlError
from ...utils import redact_sensitive_data
from .assets import AssetProvider, default_assets
from .sync import sync_file_commands, sync_files_commands
from .utils import DATA_DIR, dump_yaml, parse_env_file, parse_yaml

logger = logging.getLogger("k3s.component")

CONFIG_DIR = '/etc/rancher/k3s'
CONFIG_FILE = f'{CONFIG_DIR}/config.yaml'
REGISTRY_FILE = f'{CONFIG_DIR}/registries.yaml'
SYSTEMD_DIR = '/etc/systemd/system'
DEFAULT_BIN_DIR = '/usr/local/bin'
JOURNAL_LINES = 200


@dataclass
class NodeStatus:
    """Service state of one node; diagnostics are only fetched when inactive."""
    active: bool
    status_log: str = ''
    journal: str = ''

    def __bool__(self) -> bool:
        return self.active


class K3sComponent(ABC):
    """Base class for the server and agent roles."""

    role: str = ''
    service_name: str = ''
    uninstall_script: str = ''

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        registry: Optional[Dict[str, Any]] = None,
        version: Optional[str] = None,
        bin_dir: Optional[str] = None,
        extra_files: Optional[Dict[str, str]] = None,
        assets: Optional[AssetProvider] = None,
    ):
        self.config: Dict[str, Any] = copy.deepcopy(config) if config else {}
        self.registry: Dict[str, Any] = copy.deepcopy(registry) if registry else {}
        self.version = version if version is not None else Config.K3S_VERSION
        self.bin_dir = bin_dir or DEFAULT_BIN_DIR
        self.extra_files: Dict[str, str] = dict(extra_files or {})
        self.assets = assets or default_assets

        if self.registry:
            self.config['embedded-registry'] = True

    @property
    def data_dir(self) -> str:
        return self.config.get('data-dir') or DATA_DIR

    @property
    def install_script_path(self) -> str:
        return f"{self.bin_dir}/k3s-install.sh"

    @property
    def env_file_path(self) -> str:
        return f"{SYSTEMD_DIR}/{self.service_name}.service.env"

    def log(self, conn, message: str, *args) -> None:
        logger.info("[%s] %s " + message, conn.host, self.role, *args)

    # -- preinstall ---------------------------------------------------------

    def preinstall(self, conn) -> None:
        """Wait for SSH, then push the install script, config and extra files."""
        conn.wait_until_ready()
        self.log(conn, "preinstall")
        logger.debug("[%s] config: %s", conn.host, redact_sensitive_data(self.config))

        commands = [
            f"sudo mkdir -p {shlex.quote(self.data_dir)}",
            f"sudo mkdir -p {CONFIG_DIR}",
        ]
        commands.extend(sync_file_commands(self.install_script_path, self.assets.install_script()))
        commands.extend(self._config_sync_commands())
        commands.extend(sync_files_commands(self.extra_files))
        conn.run_stream(commands)

    def _config_sync_commands(self) -> List[str]:
        commands = sync_file_commands(CONFIG_FILE, dump_yaml(self.config))
        if self.registry:
            commands.extend(sync_file_commands(REGISTRY_FILE, dump_yaml(self.registry)))
        return commands

    # -- install ------------------------------------------------------------

    def install_env(self) -> Dict[str, str]:
        env = {
            'INSTALL_K3S_SKIP_START': 'true',
            'INSTALL_K3S_EXEC': self.role,
            'BIN_DIR': self.bin_dir,
        }
        if self.version:
            env['INSTALL_K3S_VERSION'] = self.version
        return env

    def install_command(self) -> str:
        env = ' '.join(f"{key}={shlex.quote(value)}" for key, value in self.install_env().items())
        return f"sudo {env} sh {shlex.quote(self.install_script_path)}"

    def install(self, conn) -> None:
        """Run the install script, then start the service.

        Raises:
            ComponentError: If the service fails to start
        """
        self.log(conn, "install")
        conn.run_stream([
            self.install_command(),
            "sudo systemctl daemon-reload",
        ])
        self._start(conn, "start")
        self.after_install(conn)

    def after_install(self, conn) -> None:
        """Hook for role specific work once the service is running."""

    def _start(self, conn, action: str) -> None:
        try:
            conn.run_stream([f"sudo systemctl {action} {self.service_name}"])
        except CommandError as e:
            status_log, journal = self.diagnostics(conn)
            logger.error("[%s] %s failed to %s:\n%s", conn.host, self.service_name, action, status_log)
            logger.debug("[%s] %s journal:\n%s", conn.host, self.service_name, journal)
            raise ComponentError(
                f"was not able to {action} {self.service_name} on {conn.host}: {e}"
            ) from e

    # -- update -------------------------------------------------------------

    def update(self, conn) -> None:
        """Rewrite config, registry and extra files on the node and restart the service."""
        conn.wait_until_ready()
        self.log(conn, "update")
        logger.debug("[%s] config: %s", conn.host, redact_sensitive_data(self.config))
        conn.run_stream(self._config_sync_commands() + sync_files_commands(self.extra_files))
        self._start(conn, "restart")

    # -- uninstall ----------------------------------------------------------

    @abstractmethod
    def uninstall(self, conn, *args, **kwargs) -> None:
        """Remove the role from the node."""

    def run_uninstall_script(self, conn) -> None:
        self.log(conn, "uninstall")
        conn.run_stream([f"sudo sh {shlex.quote(f'{self.bin_dir}/{self.uninstall_script}')}"])

    # -- status -------------------------------------------------------------

    def status(self, conn) -> NodeStatus:
        """Report whether the service is active.

        An inactive service is not an error; its status and journal are
        fetched best-effort and logged.
        """
        output = conn.run(f"sudo systemctl is-active {self.service_name} || true")
        if output.strip() == 'active':
            return NodeStatus(active=True)

        status_log, journal = self.diagnostics(conn)
        logger.warning("[%s] %s is not active:\n%s", conn.host, self.service_name, status_log)
        logger.debug("[%s] %s journal:\n%s", conn.host, self.service_name, journal)
        return NodeStatus(active=False, status_log=status_log, journal=journal)

    def diagnostics(self, conn):
        """Best-effort ``systemctl status`` and journal tail for the service."""
        commands = (
            f"sudo systemctl status {self.service_name} --no-pager || true",
            f"sudo journalctl -u {self.service_name} --no-pager -n {JOURNAL_LINES} || true",
        )
        results = []
        for command in commands:
            try:
                results.append(conn.run(command))
            except K3sctlError as e:
                logger.debug("[%s] diagnostics unavailable: %s", conn.host, e)
                results.append('')
        return results[0], results[1]

    # -- resync -------------------------------------------------------------

    def resync(self, conn) -> None:
        """Rebuild component state from the files already on the node."""
        self.config = self._read_yaml(conn, CONFIG_FILE)
        self.registry = self._read_yaml(conn, REGISTRY_FILE)
        self.resync_role(conn)

    def resync_role(self, conn) -> None:
        """Hook for role specific state."""

    def _read_yaml(self, conn, path: str) -> Dict[str, Any]:
        text = conn.read_file(path, missing_ok=True)
        try:
            return parse_yaml(text)
        except (yaml.YAMLError, ValueError) as e:
            raise ComponentError(f"parsing {path} on {conn.host}: {e}") from e

    def read_env(self, conn) -> Dict[str, str]:
        return parse_env_file(conn.read_file(self.env_file_path, missing_ok=True))
