"""Kubernetes API helpers used during agent teardown."""
import logging
from typing import Iterable, List, Optional

import yaml
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config import ConfigException
from urllib3.exceptions import HTTPError

from ..errors import NodeDeleteError

logger = logging.getLogger("kube")

# k3s records the node's primary addresses (comma separated on dual-stack) here
INTERNAL_IP_ANNOTATION = "k3s.io/internal-ip"


def core_api_from_kubeconfig(kubeconfig: str) -> client.CoreV1Api:
    """
    Build a CoreV1Api from kubeconfig text without touching ~/.kube/config.
    """
    if not kubeconfig or not kubeconfig.strip():
        raise NodeDeleteError("No kubeconfig provided, cannot reach the cluster API")
    try:
        config_dict = yaml.safe_load(kubeconfig)
    except yaml.YAMLError as e:
        raise NodeDeleteError(f"Invalid kubeconfig: {e}") from e
    try:
        api_client = config.new_client_from_config_dict(config_dict)
    except ConfigException as e:
        raise NodeDeleteError(f"Unusable kubeconfig: {e}") from e
    return client.CoreV1Api(api_client)


def node_addresses(node) -> List[str]:
    annotations = (node.metadata.annotations or {}) if node.metadata else {}
    raw = annotations.get(INTERNAL_IP_ANNOTATION, "")
    return [addr.strip() for addr in raw.split(",") if addr.strip()]


def find_node_name(api: client.CoreV1Api, addresses: Iterable[str]) -> Optional[str]:
    """Return the name of the node whose recorded internal IP is one of ``addresses``."""
    wanted = set(addresses)
    for node in api.list_node().items:
        if wanted.intersection(node_addresses(node)):
            return node.metadata.name
    return None


def delete_node_by_address(kubeconfig: str, addresses: Iterable[str]) -> str:
    """
    Delete the node object matching one of the given addresses.
    Returns the deleted node's name.
    """
    addresses = list(addresses)
    api = core_api_from_kubeconfig(kubeconfig)
    try:
        name = find_node_name(api, addresses)
        if name is None:
            raise NodeDeleteError(
                f"No node found with {INTERNAL_IP_ANNOTATION} in {', '.join(addresses)}"
            )
        logger.info(f"Deleting node {name} from the cluster")
        api.delete_node(name)
    except ApiException as e:
        raise NodeDeleteError(f"Kubernetes API error: {e.status} {e.reason}") from e
    except HTTPError as e:
        raise NodeDeleteError(f"Cluster API unreachable: {e}") from e
    return name
