"""
Pydantic models for the CouchDB custom resource.

A CouchDB resource describes the desired shape of one cluster. The operator
records whether the cluster has been bootstrapped as a string annotation on
that same resource.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

INITIALIZED_ANNOTATION = "couchdb.org/initialized"

# The resource has no schema; metadata and spec may hold anything.
_MAPPING = TypeAdapter(Dict[str, Any])


class KeySelector(BaseModel):
    """Reference to a single key of a Secret or ConfigMap."""

    name: str = Field(..., description="Secret or ConfigMap name")
    key: str = Field(..., description="Key within the object's data")
    optional: bool = Field(default=False, description="Fall back to the default when unresolvable")


class EnvVarSource(BaseModel):
    """Source for an env variable's value (one of the refs is populated)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    secret_key_ref: Optional[KeySelector] = Field(default=None, alias="secretKeyRef")
    config_map_key_ref: Optional[KeySelector] = Field(default=None, alias="configMapKeyRef")


class EnvVar(BaseModel):
    """Environment variable declared in the cluster's pod policy."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    value: Optional[str] = None
    value_from: Optional[EnvVarSource] = Field(default=None, alias="valueFrom")

    def to_manifest(self) -> Dict[str, Any]:
        """Render as a Kubernetes container env entry."""
        return self.model_dump(by_alias=True, exclude_none=True)


class PodPolicy(BaseModel):
    """Scheduling and environment hints applied to every member pod."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    labels: Dict[str, str] = Field(default_factory=dict)
    node_selector: Dict[str, str] = Field(default_factory=dict, alias="nodeSelector")
    anti_affinity: bool = Field(default=False, alias="antiAffinity")
    couchdb_env: List[EnvVar] = Field(default_factory=list, alias="couchdbEnv")


class ClusterState(str, Enum):
    """Processing state reported in the resource status."""

    NONE = "None"
    PROCESSED = "Processed"


class ClusterStatus(BaseModel):
    """Status block of the CouchDB resource."""

    state: ClusterState = ClusterState.NONE
    message: str = ""


class RuntimeState(BaseModel):
    """Bootstrap progress persisted on the CouchDB resource."""

    initialized: bool = False
    message: str = ""

    def to_patch(self) -> Dict[str, Any]:
        """
        Build the merge patch persisting this state.

        The flag is stored as the literal strings "true"/"false" in an
        annotation; the message goes into the status block.
        """
        return {
            "metadata": {
                "annotations": {
                    INITIALIZED_ANNOTATION: "true" if self.initialized else "false",
                },
            },
            "status": {
                "state": ClusterState.PROCESSED.value,
                "message": self.message,
            },
        }


class CouchDBCluster(BaseModel):
    """Desired state of a CouchDB cluster."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    namespace: str
    uid: Optional[str] = None
    resource_version: Optional[str] = None
    annotations: Dict[str, str] = Field(default_factory=dict)

    version: str = ""
    base_image: str = Field(default="", alias="baseImage")
    size: int = Field(default=0, ge=0)
    pod: PodPolicy = Field(default_factory=PodPolicy)
    status: ClusterStatus = Field(default_factory=ClusterStatus)

    @classmethod
    def from_resource(cls, body: Dict[str, Any]) -> "CouchDBCluster":
        """
        Parse a CouchDB custom object as returned by the Kubernetes API.

        Raises:
            pydantic.ValidationError: If the object does not describe a cluster
        """
        metadata = _MAPPING.validate_python(body.get("metadata") or {})
        spec = _MAPPING.validate_python(body.get("spec") or {})
        return cls(
            name=metadata.get("name"),
            namespace=metadata.get("namespace"),
            uid=metadata.get("uid"),
            resource_version=metadata.get("resourceVersion"),
            annotations=metadata.get("annotations") or {},
            version=spec.get("version") or "",
            base_image=spec.get("baseImage") or "",
            size=spec.get("size") or 0,
            pod=spec.get("pod") or {},
            status=body.get("status") or {},
        )

    @property
    def runtime_state(self) -> RuntimeState:
        """Read the bootstrap flag from the resource annotations."""
        return RuntimeState(
            initialized=self.annotations.get(INITIALIZED_ANNOTATION) == "true",
            message=self.status.message,
        )
