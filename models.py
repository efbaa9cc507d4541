import base64
from typing import Any
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    RootModel,
    model_validator,
    field_validator,
)
from enum import StrEnum


class ApiVersion(StrEnum):
    V1 = "admission.k8s.io/v1"
    V1BETA1 = "admission.k8s.io/v1beta1"


class Operation(StrEnum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CONNECT = "CONNECT"


class PatchType(StrEnum):
    JSONPatch = "JSONPatch"


class PatchOp(StrEnum):
    REPLACE = "replace"
    ADD = "add"
    REMOVE = "remove"


class PatchAction(BaseModel):
    op: PatchOp
    path: str
    value: Any


# https://jsonpatch.com/
Patch = RootModel[list[PatchAction]]


# https://kubernetes.io/docs/reference/generated/kubernetes-api/v1.30/#status-v1-meta
class AdmissionReviewStatus(BaseModel):
    message: str
    code: int | None = None


# https://kubernetes.io/docs/reference/config-api/apiserver-admission.v1/#admission-k8s-io-v1-AdmissionResponse
class AdmissionResponse(BaseModel):
    allowed: bool
    status: AdmissionReviewStatus | None = None
    uid: str
    patchType: PatchType | None = None
    patch: str | None = None

    @field_validator("patch", mode="before")
    @classmethod
    def validate_patch(cls, val):
        if isinstance(val, Patch):
            val = base64.b64encode(val.model_dump_json().encode()).decode()
        elif isinstance(val, (str, bytes)):
            # Make sure the base64 string contains valid data.
            Patch.model_validate_json(base64.b64decode(val))
            if isinstance(val, bytes):
                val = val.decode()
        return val

    @model_validator(mode="after")
    def validate_model(self):
        if self.patch and not self.patchType:
            raise ValueError("missing patchType field")
        if self.patchType and not self.patch:
            raise ValueError(f"patchType is {self.patchType} but there is no patch")

        return self


# https://kubernetes.io/docs/reference/generated/kubernetes-api/v1.30/#groupversionresource-v1-meta
class GroupVersionResource(BaseModel):
    model_config = ConfigDict(frozen=True)

    group: str = ""
    version: str
    resource: str

    def __str__(self):
        parts = (self.group, self.version, self.resource)
        return "/".join(part for part in parts if part)


class GroupVersionKind(BaseModel):
    group: str = ""
    version: str
    kind: str


# https://kubernetes.io/docs/reference/config-api/apiserver-admission.v1/#admission-k8s-io-v1-AdmissionRequest
class AdmissionRequest(BaseModel):
    uid: str
    kind: GroupVersionKind | None = None
    resource: GroupVersionResource | None = None
    name: str | None = None
    namespace: str | None = None
    operation: Operation = Operation.CREATE
    object: dict[str, Any] | None = None


# https://kubernetes.io/docs/reference/config-api/apiserver-admission.v1/#admission-k8s-io-v1-AdmissionReview
class AdmissionReview(BaseModel):
    apiVersion: ApiVersion = ApiVersion.V1
    kind: str = "AdmissionReview"
    request: AdmissionRequest | None = None
    response: AdmissionResponse | None = None

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, val):
        if val != "AdmissionReview":
            raise ValueError(f"unexpected kind {val}")
        return val

    @model_validator(mode="after")
    def validate_model(self):
        if not (self.request or self.response):
            raise ValueError("must contain a request or a response")

        return self


class OwnerReference(BaseModel):
    apiVersion: str | None = None
    kind: str | None = None
    name: str
    uid: str | None = None
    controller: bool | None = None


class ObjectMeta(BaseModel):
    name: str | None = None
    generateName: str | None = None
    namespace: str | None = None
    labels: dict[str, str] = {}
    ownerReferences: list[OwnerReference] = []

    @field_validator("labels", "ownerReferences", mode="before")
    @classmethod
    def null_as_empty(cls, val, info):
        if val is None:
            return {} if info.field_name == "labels" else []
        return val


class PersistentVolumeClaimVolumeSource(BaseModel):
    model_config = ConfigDict(extra="allow")

    claimName: str
    readOnly: bool | None = None


class Volume(BaseModel):
    """A pod volume.

    Only persistentVolumeClaim volumes are inspected. Every other volume
    source is kept as an extra field so that the volume list can be written
    back as a whole.
    """

    model_config = ConfigDict(extra="allow")

    name: str | None = None
    persistentVolumeClaim: PersistentVolumeClaimVolumeSource | None = None


class PodSpec(BaseModel):
    volumes: list[Volume] = []
    nodeSelector: dict[str, str] = {}

    @field_validator("volumes", "nodeSelector", mode="before")
    @classmethod
    def null_as_empty(cls, val, info):
        if val is None:
            return [] if info.field_name == "volumes" else {}
        return val


class Pod(BaseModel):
    metadata: ObjectMeta
    spec: PodSpec = Field(default_factory=PodSpec)


class ClaimMetadata(BaseModel):
    name: str
    namespace: str | None = None
    labels: dict[str, str] | None = None


# https://kubernetes.io/docs/reference/kubernetes-api/config-and-storage-resources/persistent-volume-claim-v1/
class PersistentVolumeClaim(BaseModel):
    apiVersion: str = "v1"
    kind: str = "PersistentVolumeClaim"
    metadata: ClaimMetadata
    spec: dict[str, Any] = {}


class ClaimTemplate(BaseModel):
    metadata: dict[str, Any] | None = None
    spec: dict[str, Any] = {}


class StatefulSetSpec(BaseModel):
    volumeClaimTemplates: list[ClaimTemplate] = []

    @field_validator("volumeClaimTemplates", mode="before")
    @classmethod
    def null_as_empty(cls, val):
        return [] if val is None else val


# https://kubernetes.io/docs/reference/kubernetes-api/workload-resources/stateful-set-v1/
class StatefulSet(BaseModel):
    metadata: dict[str, Any] = {}
    spec: StatefulSetSpec = Field(default_factory=StatefulSetSpec)


class Outcome(StrEnum):
    OK = "ok"
    NOT_FOUND = "not-found"
    CONFLICT = "conflict"
    FAILED = "failed"


class Result(BaseModel):
    """What a provider call produced.

    Provider calls never raise for API or transport errors; callers branch on
    `outcome` instead.
    """

    outcome: Outcome
    value: dict[str, Any] | None = None
    reason: str | None = None

    @classmethod
    def ok(cls, value=None):
        return cls(outcome=Outcome.OK, value=value)

    @classmethod
    def not_found(cls, reason=None):
        return cls(outcome=Outcome.NOT_FOUND, reason=reason)

    @classmethod
    def conflict(cls, reason=None):
        return cls(outcome=Outcome.CONFLICT, reason=reason)

    @classmethod
    def failed(cls, reason):
        return cls(outcome=Outcome.FAILED, reason=reason)


class MutatorConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    target_node: str
    hostname_key: str = "kubernetes.io/hostname"
    label_name: str = "middleware"
    label_value: str = "redis"
    claim_suffix: str = "-replica"
    pod_resource: GroupVersionResource = GroupVersionResource(
        version="v1", resource="pods"
    )
