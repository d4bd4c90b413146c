"""k3s server role."""

import logging
import shlex
from typing import Optional

from ...errors import MissingSecretError
from .component import CONFIG_DIR, K3sComponent
from .kubeconfig import api_server_url, update_kubeconfig_host

logger = logging.getLogger("k3s.server")

KUBECONFIG_FILE = f'{CONFIG_DIR}/k3s.yaml'
OIDC_DIR = f'{CONFIG_DIR}/oidc'
OIDC_SIGNING_KEY_FILE = f'{OIDC_DIR}/sa-signer.key'
OIDC_PUBLIC_KEY_FILE = f'{OIDC_DIR}/sa-signer-pkcs8.pub'
APISERVER_ARG = 'kube-apiserver-arg'


class K3sServer(K3sComponent):
    """A k3s server (control plane) node.

    A fresh server mints the cluster token and kubeconfig. A server given an
    HA token and server URL joins that cluster instead.
    """

    role = 'server'
    service_name = 'k3s'
    uninstall_script = 'k3s-uninstall.sh'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.token = ''
        self.kubeconfig = ''

    @property
    def token_file(self) -> str:
        return f"{self.data_dir}/server/token"

    @property
    def joining(self) -> bool:
        """True when this server joins an existing cluster."""
        return bool(self.config.get('server')) and bool(self.config.get('token'))

    def add_ha(self, cluster_init: bool, token: Optional[str] = None, server: Optional[str] = None) -> None:
        """Configure embedded-etcd HA: either initialize the cluster or join ``server``.

        ``server`` may be a bare host or a full URL.
        """
        if cluster_init:
            self.config['cluster-init'] = True
            return
        if not token or not server:
            raise ValueError("when not in cluster-init, token and server must be passed")
        self.config.pop('cluster-init', None)
        self.config['token'] = token
        self.config['server'] = server if server.startswith('https://') else api_server_url(server)

    def add_tls_san(self, san: str) -> None:
        self.config['tls-san'] = san

    def add_oidc(self, audience: str, issuer: str, signing_key: str, pkcs8: str) -> None:
        """Use the given key pair for service account tokens and serve OIDC discovery.

        The keys are synced as extra files; apiserver args are appended to any
        already configured.
        """
        self.extra_files[OIDC_SIGNING_KEY_FILE] = signing_key
        self.extra_files[OIDC_PUBLIC_KEY_FILE] = pkcs8

        args = self.config.get(APISERVER_ARG) or []
        if isinstance(args, str):
            args = [args]
        args = list(args)
        for arg in (
            f"service-account-issuer={issuer}",
            f"service-account-key-file={OIDC_PUBLIC_KEY_FILE}",
            f"service-account-signing-key-file={OIDC_SIGNING_KEY_FILE}",
            f"api-audiences={audience}",
        ):
            if arg not in args:
                args.append(arg)
        self.config[APISERVER_ARG] = args

    def after_install(self, conn) -> None:
        if self.joining:
            self.token = self.config['token']
            self.kubeconfig = ''
            return

        self.token = conn.read_file(self.token_file).strip()
        self.kubeconfig = update_kubeconfig_host(conn.read_file(KUBECONFIG_FILE), conn.host)
        logger.info("[%s] harvested cluster token and kubeconfig", conn.host)

    def uninstall(self, conn, *args, **kwargs) -> None:
        # Removing an etcd member cleanly needs quorum-aware tooling; only the
        # local uninstall script is run.
        self.run_uninstall_script(conn)

    def resync_role(self, conn) -> None:
        token = conn.read_file(self.token_file, missing_ok=True).strip()
        if not token:
            token = self.read_env(conn).get('K3S_TOKEN', '')
        if not token:
            raise MissingSecretError(
                f"no server token in {self.token_file} or {self.env_file_path} on {conn.host}"
            )
        self.token = token
        self.kubeconfig = update_kubeconfig_host(conn.read_file(KUBECONFIG_FILE), conn.host)

    def jwks(self, conn) -> str:
        """JSON web key set served by the apiserver."""
        kubectl = shlex.quote(f"{self.bin_dir}/k3s")
        return conn.run(f"sudo {kubectl} kubectl get --raw /openid/v1/jwks").strip()
