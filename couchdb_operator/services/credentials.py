"""
Admin credential resolution for cluster bootstrap.

CouchDB's admin user and password are declared as container env variables in
the cluster's pod policy, either inline or by reference to a Secret or
ConfigMap key. The bootstrap needs the same values to authenticate the
add_node calls, so they are resolved here from those declarations.
"""
from typing import List, Optional

from pydantic import BaseModel, SecretStr

from couchdb_operator.config.logging import get_logger
from couchdb_operator.exceptions import CredentialResolutionError, KubernetesError
from couchdb_operator.models.cluster import EnvVar, KeySelector
from couchdb_operator.services.kubernetes import ConfigStore

logger = get_logger(__name__)

ADMIN_USER_ENV = "COUCHDB_USER"
ADMIN_PASSWORD_ENV = "COUCHDB_PASSWORD"
DEFAULT_ADMIN_USER = "admin"
DEFAULT_ADMIN_PASSWORD = "admin"


class AdminCredentials(BaseModel):
    """Resolved admin credentials. Never persisted."""

    username: str
    password: SecretStr


class CredentialResolver:
    """
    Resolves AdminCredentials from pod policy env declarations.

    Resolution is not cached; each bootstrap attempt reads the referenced
    Secrets and ConfigMaps again.
    """

    def __init__(self, config_store: ConfigStore):
        self.config_store = config_store

    async def resolve(self, env: List[EnvVar], namespace: str) -> AdminCredentials:
        """
        Resolve the admin username and password.

        Args:
            env: Ordered env declarations from the pod policy
            namespace: Namespace of the cluster, used for every reference

        Returns:
            Resolved credentials, with defaults for undeclared variables

        Raises:
            CredentialResolutionError: If a declared reference cannot be read
        """
        username = await self._resolve_variable(env, ADMIN_USER_ENV, DEFAULT_ADMIN_USER, namespace)
        password = await self._resolve_variable(
            env, ADMIN_PASSWORD_ENV, DEFAULT_ADMIN_PASSWORD, namespace
        )
        return AdminCredentials(username=username, password=SecretStr(password))

    async def _resolve_variable(
        self,
        env: List[EnvVar],
        variable: str,
        default: str,
        namespace: str,
    ) -> str:
        declaration = _find_declaration(env, variable)
        if declaration is None:
            return default
        if declaration.value:
            return declaration.value

        source = declaration.value_from
        if source is None:
            return default

        if source.secret_key_ref is not None:
            selector = source.secret_key_ref
            reference = f"secret {namespace}/{selector.name} key {selector.key}"
            read = self.config_store.read_secret_key
        elif source.config_map_key_ref is not None:
            selector = source.config_map_key_ref
            reference = f"configmap {namespace}/{selector.name} key {selector.key}"
            read = self.config_store.read_config_map_key
        else:
            return default

        try:
            value = await read(namespace, selector.name, selector.key)
        except KubernetesError as e:
            raise CredentialResolutionError(variable, reference, e.message) from e

        return _value_or_default(value, selector, variable, reference, default)


def _find_declaration(env: List[EnvVar], variable: str) -> Optional[EnvVar]:
    # Later declarations override earlier ones, as for container env.
    found = None
    for declaration in env:
        if declaration.name == variable:
            found = declaration
    return found


def _value_or_default(
    value: Optional[str],
    selector: KeySelector,
    variable: str,
    reference: str,
    default: str,
) -> str:
    if value is not None:
        return value
    if selector.optional:
        logger.debug("optional_credential_reference_missing", variable=variable, reference=reference)
        return default
    raise CredentialResolutionError(variable, reference, "not found")
