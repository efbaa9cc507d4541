import logging

import urllib3
from kubernetes import config, client
from kubernetes.client.rest import ApiException
from kubernetes.dynamic.exceptions import (
    ConflictError,
    DynamicApiError,
    NotFoundError,
)
from openshift.dynamic import DynamicClient
from typing_extensions import Protocol

from exc import ProviderError
from models import PersistentVolumeClaim, Result

LOG = logging.getLogger(__name__)


class Provider(Protocol):
    def get_claim(
        self, namespace: str, name: str, timeout: float | None = None
    ) -> Result: ...

    def create_claim(
        self, namespace: str, claim: PersistentVolumeClaim, timeout: float | None = None
    ) -> Result: ...

    def get_workload(
        self, namespace: str, name: str, timeout: float | None = None
    ) -> Result: ...


class KubernetesProvider(Provider):
    def __init__(self):
        """Allocate a Kubernetes dynamic client shared by every request"""

        super().__init__()

        try:
            config.load_config()
        except config.ConfigException as err:
            LOG.warning("unable to configure Kubernetes client: %s", err)
            raise ProviderError("unable to configure Kubernetes client")

        k8s_client = client.ApiClient()
        dyn_client = DynamicClient(k8s_client)

        self._claim_resource = dyn_client.resources.get(
            api_version="v1", kind="PersistentVolumeClaim"
        )
        self._workload_resource = dyn_client.resources.get(
            api_version="apps/v1", kind="StatefulSet"
        )

    def _call(self, what, func, **kwargs):
        try:
            obj = func(**kwargs)
        except NotFoundError as err:
            return Result.not_found(err.summary())
        except ConflictError as err:
            return Result.conflict(err.summary())
        except DynamicApiError as err:
            LOG.warning("%s failed: %s", what, err.summary())
            return Result.failed(err.summary())
        except (ApiException, urllib3.exceptions.HTTPError) as err:
            LOG.warning("%s failed: %s", what, err)
            return Result.failed(str(err))

        return Result.ok(obj.to_dict())

    def get_claim(self, namespace, name, timeout=None):
        return self._call(
            f"get persistentvolumeclaim {namespace}/{name}",
            self._claim_resource.get,
            name=name,
            namespace=namespace,
            _request_timeout=timeout,
        )

    def create_claim(self, namespace, claim, timeout=None):
        return self._call(
            f"create persistentvolumeclaim {namespace}/{claim.metadata.name}",
            self._claim_resource.create,
            body=claim.model_dump(exclude_none=True),
            namespace=namespace,
            _request_timeout=timeout,
        )

    def get_workload(self, namespace, name, timeout=None):
        return self._call(
            f"get statefulset {namespace}/{name}",
            self._workload_resource.get,
            name=name,
            namespace=namespace,
            _request_timeout=timeout,
        )
