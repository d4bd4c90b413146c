"""Read-only files bundled with the package."""
import logging
from importlib import resources
from pathlib import Path
from typing import Optional

from ...config import Config

logger = logging.getLogger("k3s.assets")

INSTALL_SCRIPT = 'k3s-install.sh'


class AssetProvider:
    """Serves bundled assets by name; never writes them."""

    def __init__(self, package: str = __package__, install_script_path: Optional[str] = None):
        self.package = package
        self.install_script_path = install_script_path if install_script_path is not None else Config.INSTALL_SCRIPT

    def read(self, name: str) -> bytes:
        return resources.files(self.package).joinpath('assets').joinpath(name).read_bytes()

    def install_script(self) -> bytes:
        """The install script, from ``K3SCTL_INSTALL_SCRIPT`` when set, else the bundled one."""
        if self.install_script_path:
            path = Path(self.install_script_path).expanduser()
            logger.debug("Using install script override %s", path)
            return path.read_bytes()
        return self.read(INSTALL_SCRIPT)


default_assets = AssetProvider()
