"""
Kubernetes adapters used by the reconciler and the bootstrap orchestrator.

- PodFleet: create/list/delete member pods by label selector
- ClusterStore: point-read CouchDB resources and persist their runtime state
- ConfigStore: point-read single keys of Secrets and ConfigMaps

API failures are raised as KubernetesError. Point reads return None for
objects that do not exist.
"""
import base64
import binascii
from typing import Any, Dict, List, Optional

import aiohttp
from kubernetes_asyncio import client, config
from kubernetes_asyncio.client import ApiException
from pydantic import ValidationError

from couchdb_operator.config.logging import get_logger
from couchdb_operator.config.settings import Settings
from couchdb_operator.exceptions import KubernetesError
from couchdb_operator.models.cluster import CouchDBCluster, RuntimeState
from couchdb_operator.models.pod import MemberPod, cluster_selector

logger = get_logger(__name__)

_API_ERRORS = (ApiException, aiohttp.ClientError)


def _api_error(action: str, error: Exception, **details: Any) -> KubernetesError:
    if isinstance(error, ApiException):
        details.update(status=error.status, reason=error.reason)
        return KubernetesError(f"{action} failed: {error.reason}", details=details)
    details.update(reason=str(error))
    return KubernetesError(f"{action} failed: {error}", details=details)


class KubernetesClientSet:
    """Container for Kubernetes API clients."""

    def __init__(self, api_client: client.ApiClient):
        self.api_client = api_client
        self.core_api = client.CoreV1Api(api_client)
        self.custom_api = client.CustomObjectsApi(api_client)

    async def close(self):
        """Close all API clients."""
        if self.api_client:
            await self.api_client.close()


async def create_client_set(kubeconfig: Optional[str] = None) -> KubernetesClientSet:
    """
    Build API clients from a kubeconfig file, or from the in-cluster
    service account when no file is given.
    """
    configuration = client.Configuration()
    if kubeconfig:
        await config.load_kube_config(
            config_file=kubeconfig,
            client_configuration=configuration,
        )
    else:
        config.load_incluster_config(client_configuration=configuration)

    logger.info(
        "kubernetes_configuration_loaded",
        host=configuration.host,
        source=kubeconfig or "in-cluster",
    )
    return KubernetesClientSet(client.ApiClient(configuration=configuration))


class PodFleet:
    """Member pod operations against the CoreV1 API."""

    def __init__(self, core_api: client.CoreV1Api):
        self.core_api = core_api

    async def list_pods(self, namespace: str, cluster_name: str) -> List[MemberPod]:
        """List every member pod labelled for the cluster."""
        try:
            result = await self.core_api.list_namespaced_pod(
                namespace=namespace,
                label_selector=cluster_selector(cluster_name),
            )
        except _API_ERRORS as e:
            raise _api_error("list pods", e, namespace=namespace, cluster=cluster_name)
        return [MemberPod.from_k8s(pod) for pod in result.items]

    async def create_pod(self, namespace: str, manifest: Dict[str, Any]) -> str:
        """Create a pod from a manifest and return its name."""
        try:
            pod = await self.core_api.create_namespaced_pod(namespace=namespace, body=manifest)
        except _API_ERRORS as e:
            raise _api_error(
                "create pod", e, namespace=namespace, pod=manifest["metadata"].get("name")
            )
        return pod.metadata.name

    async def delete_pod(self, namespace: str, name: str) -> None:
        try:
            await self.core_api.delete_namespaced_pod(name=name, namespace=namespace)
        except _API_ERRORS as e:
            raise _api_error("delete pod", e, namespace=namespace, pod=name)


class ClusterStore:
    """Point reads and runtime state writes for CouchDB resources."""

    def __init__(
        self,
        custom_api: client.CustomObjectsApi,
        group: str,
        version: str,
        plural: str,
    ):
        self.custom_api = custom_api
        self.group = group
        self.version = version
        self.plural = plural

    @classmethod
    def from_settings(cls, custom_api: client.CustomObjectsApi, settings: Settings) -> "ClusterStore":
        return cls(custom_api, settings.crd_group, settings.crd_version, settings.crd_plural)

    async def get_cluster(self, namespace: str, name: str) -> Optional[CouchDBCluster]:
        """Read a cluster resource, returning None if it does not exist."""
        try:
            body = await self.custom_api.get_namespaced_custom_object(
                group=self.group,
                version=self.version,
                namespace=namespace,
                plural=self.plural,
                name=name,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise _api_error("get cluster", e, namespace=namespace, cluster=name)
        except aiohttp.ClientError as e:
            raise _api_error("get cluster", e, namespace=namespace, cluster=name)
        try:
            return CouchDBCluster.from_resource(body)
        except ValidationError as e:
            raise KubernetesError(
                f"invalid cluster resource {namespace}/{name}",
                details={"errors": e.errors(include_url=False)},
            )

    async def write_runtime_state(self, cluster: CouchDBCluster, state: RuntimeState) -> None:
        """
        Persist the bootstrap flag and message with a merge patch.

        The write is unconditional: no resource version precondition is sent.
        """
        try:
            await self.custom_api.patch_namespaced_custom_object(
                group=self.group,
                version=self.version,
                namespace=cluster.namespace,
                plural=self.plural,
                name=cluster.name,
                body=state.to_patch(),
                _content_type="application/merge-patch+json",
            )
        except _API_ERRORS as e:
            raise _api_error(
                "write runtime state", e, namespace=cluster.namespace, cluster=cluster.name
            )


class ConfigStore:
    """Single-key reads from Secrets and ConfigMaps."""

    def __init__(self, core_api: client.CoreV1Api):
        self.core_api = core_api

    async def read_secret_key(self, namespace: str, name: str, key: str) -> Optional[str]:
        """Return the decoded value, or None if the secret or key is missing."""
        try:
            secret = await self.core_api.read_namespaced_secret(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise _api_error("read secret", e, namespace=namespace, secret=name)
        except aiohttp.ClientError as e:
            raise _api_error("read secret", e, namespace=namespace, secret=name)

        encoded = (secret.data or {}).get(key)
        if encoded is None:
            return None
        try:
            return base64.b64decode(encoded).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise KubernetesError(
                f"read secret failed: key {key} is not base64-encoded UTF-8",
                details={"namespace": namespace, "secret": name, "reason": str(e)},
            )

    async def read_config_map_key(self, namespace: str, name: str, key: str) -> Optional[str]:
        """Return the value, or None if the config map or key is missing."""
        try:
            config_map = await self.core_api.read_namespaced_config_map(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise _api_error("read config map", e, namespace=namespace, config_map=name)
        except aiohttp.ClientError as e:
            raise _api_error("read config map", e, namespace=namespace, config_map=name)

        return (config_map.data or {}).get(key)
