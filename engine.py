import logging

import pydantic

from exc import DecodeError
from models import AdmissionRequest, MutatorConfig, Patch, Pod
from patches import build_patch
from reconciler import ClaimReconciler, ClaimStatus

LOG = logging.getLogger(__name__)


class PodMutator:
    """Decide how an admitted pod should be rewritten.

    Managed pods have every persistentVolumeClaim volume pointed at a replica
    claim (which is created if necessary) and are pinned to the target node.
    Only a pod that cannot be decoded makes `decide` fail; everything else is
    best effort.
    """

    def __init__(self, provider, config: MutatorConfig):
        self.config = config
        self.reconciler = ClaimReconciler(provider)

    def replica_name(self, claim_name: str) -> str:
        return f"{claim_name}{self.config.claim_suffix}"

    def is_managed(self, pod: Pod) -> bool:
        labels = pod.metadata.labels
        return labels.get(self.config.label_name) == self.config.label_value

    def decode(self, req: AdmissionRequest) -> Pod:
        if req.object is None:
            raise DecodeError("could not deserialize pod object: request has no object")

        try:
            pod = Pod.model_validate(req.object)
        except pydantic.ValidationError as err:
            raise DecodeError(f"could not deserialize pod object: {err}") from err

        # Pods created by a controller may not carry these yet.
        if not pod.metadata.namespace:
            pod.metadata.namespace = req.namespace
        if not pod.metadata.name:
            pod.metadata.name = req.name or pod.metadata.generateName

        return pod

    def rewrite_volumes(self, pod: Pod, deadline=None) -> bool:
        namespace = pod.metadata.namespace
        owners = pod.metadata.ownerReferences
        owner_name = owners[0].name if owners else None

        changed = False
        for vol in pod.spec.volumes:
            if vol.persistentVolumeClaim is None:
                continue

            old_name = vol.persistentVolumeClaim.claimName
            new_name = self.replica_name(old_name)

            status = self.reconciler.ensure_replica_claim(
                namespace, new_name, owner_name, deadline=deadline
            )
            if status == ClaimStatus.FAILED:
                LOG.warning(
                    "claim %s/%s may not exist, rewriting pod %s anyway",
                    namespace,
                    new_name,
                    pod.metadata.name,
                )

            LOG.info(
                "change pod %s claimname %s -> %s", pod.metadata.name, old_name, new_name
            )
            vol.persistentVolumeClaim.claimName = new_name
            changed = True

        return changed

    def pin_node(self, pod: Pod) -> bool:
        selector = pod.spec.nodeSelector
        if selector.get(self.config.hostname_key) == self.config.target_node:
            return False

        LOG.info("assign pod %s to node %s", pod.metadata.name, self.config.target_node)
        pod.spec.nodeSelector = {
            **selector,
            self.config.hostname_key: self.config.target_node,
        }
        return True

    def decide(self, req: AdmissionRequest, deadline=None) -> Patch:
        if req.resource != self.config.pod_resource:
            LOG.warning(
                "expected resource to be %s, got %s",
                self.config.pod_resource,
                req.resource,
            )
            return Patch([])

        pod = self.decode(req)

        if not self.is_managed(pod):
            return Patch([])

        volumes_changed = self.rewrite_volumes(pod, deadline=deadline)
        selector_changed = self.pin_node(pod)

        if not (volumes_changed or selector_changed):
            return Patch([])

        return build_patch(pod, volumes=volumes_changed, node_selector=selector_changed)
