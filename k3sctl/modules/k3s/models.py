"""Validated input models for server, agent and HA specs.

Specs are YAML files; ``config`` and ``registry`` accept a YAML string, a
mapping, or a list of either, merged in order.
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from ..ssh import NodeAuth
from .ha import HaNode
from .utils import merge_configs, parse_yaml

logger = logging.getLogger("k3s.models")

ConfigInput = Union[str, Dict[str, Any], List[Union[str, Dict[str, Any]]], None]

M = TypeVar('M', bound=BaseModel)


def config_map(value: ConfigInput) -> Dict[str, Any]:
    """Parse and merge a ``ConfigInput`` into one mapping."""
    if value is None:
        return {}
    items = value if isinstance(value, list) else [value]
    return merge_configs(*(parse_yaml(item) if isinstance(item, str) else item for item in items))


def _read_key(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    return Path(path).expanduser().read_text()


class CredentialsSpec(BaseModel):
    """SSH user and credential, all optional so HA nodes can inherit them."""
    user: Optional[str] = None
    private_key: Optional[str] = Field(default=None, description="Private key PEM text")
    private_key_path: Optional[str] = Field(default=None, description="Path to a private key file")
    password: Optional[str] = None

    def resolved_key(self) -> Optional[str]:
        return self.private_key or _read_key(self.private_key_path)


class NodeAuthSpec(CredentialsSpec):
    """Connection details for a single node."""
    host: str
    port: int = Field(default=22, ge=1, le=65535)
    user: str = 'root'

    @model_validator(mode='after')
    def check_credentials(self) -> 'NodeAuthSpec':
        has_key = bool(self.private_key or self.private_key_path)
        if not has_key and not self.password:
            raise ValueError("neither password nor private key was passed")
        if has_key and self.password:
            raise ValueError("both password and private key were passed, only pass one")
        return self

    def to_auth(self) -> NodeAuth:
        return NodeAuth(
            host=self.host,
            user=self.user,
            port=self.port,
            private_key=self.resolved_key(),
            password=self.password,
        )


class HaConfigSpec(BaseModel):
    """Run a single server in highly available mode."""
    cluster_init: bool = False
    token: Optional[str] = None
    server: Optional[str] = None

    @model_validator(mode='after')
    def check_mode(self) -> 'HaConfigSpec':
        if not self.cluster_init and (not self.token or not self.server):
            raise ValueError("when not in cluster-init, token and server must be passed")
        if self.cluster_init and (self.token or self.server):
            raise ValueError("when in cluster-init, token and server must not be passed")
        return self


class OidcSpec(BaseModel):
    audience: str
    issuer: str
    signing_key: str = Field(description="Private signing key")
    pkcs8: str = Field(description="Public signing key")


class ComponentSpec(BaseModel):
    bin_dir: Optional[str] = None
    config: ConfigInput = None
    registry: ConfigInput = None
    version: Optional[str] = None

    @field_validator('config', 'registry')
    @classmethod
    def check_yaml(cls, value: ConfigInput) -> ConfigInput:
        try:
            config_map(value)
        except yaml.YAMLError as e:
            raise ValueError(f"invalid YAML: {e}") from e
        return value

    def config_map(self) -> Dict[str, Any]:
        return config_map(self.config)

    def registry_map(self) -> Dict[str, Any]:
        return config_map(self.registry)


class ServerSpec(ComponentSpec):
    auth: NodeAuthSpec
    highly_available: Optional[HaConfigSpec] = None
    oidc: Optional[OidcSpec] = None


class AgentSpec(ComponentSpec):
    auth: NodeAuthSpec
    server: str = Field(description="URL of the server to join, e.g. https://10.0.0.1:6443")
    token: str
    kubeconfig: Optional[str] = Field(default=None, description="Kubeconfig used to delete the node on teardown")
    allow_delete_err: bool = False


class KubeconfigSpec(BaseModel):
    auth: NodeAuthSpec
    hostname: Optional[str] = None
    allow_empty: bool = False


class HaNodeSpec(CredentialsSpec):
    host: str
    port: int = Field(default=22, ge=1, le=65535)
    bin_dir: Optional[str] = None
    tls_san: Optional[str] = None


class HaServerSpec(CredentialsSpec, ComponentSpec):
    """Top-level credentials apply to every node that does not set its own."""
    nodes: List[HaNodeSpec] = Field(min_length=1)

    @model_validator(mode='after')
    def check_credentials(self) -> 'HaServerSpec':
        for node in self.ha_nodes():
            try:
                node.auth.validate()
            except ValueError as e:
                raise ValueError(f"node {node.host}: {e}") from e
        return self

    def ha_nodes(self) -> List[HaNode]:
        global_key = self.resolved_key()
        result = []
        for node in self.nodes:
            key = node.resolved_key()
            password = node.password
            # A node-level credential of either kind replaces both globals
            if not key and not password:
                key, password = global_key, self.password
            auth = NodeAuth(
                host=node.host,
                port=node.port,
                user=node.user or self.user or 'root',
                private_key=key,
                password=password,
            )
            result.append(HaNode(auth=auth, bin_dir=node.bin_dir, tls_san=node.tls_san))
        return result


def load_spec(path: Union[str, Path], model: Type[M]) -> M:
    """Read a YAML spec file into ``model``.

    Raises:
        FileNotFoundError: If the file does not exist
        yaml.YAMLError: If the file is not valid YAML
        pydantic.ValidationError: If the spec does not validate
    """
    path = Path(path).expanduser()
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    logger.debug(f"Loaded {model.__name__} from {path}")
    return model.model_validate(data)
