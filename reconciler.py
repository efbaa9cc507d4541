import copy
import logging
from enum import StrEnum

import pydantic

from models import (
    ClaimMetadata,
    Outcome,
    PersistentVolumeClaim,
    StatefulSet,
)

LOG = logging.getLogger(__name__)


class ClaimStatus(StrEnum):
    FOUND = "found"
    CREATED = "created"
    FAILED = "failed"


class ClaimReconciler:
    """Make sure a replica claim exists, creating it from the owning
    StatefulSet's first volume claim template when it does not.

    Claims are only ever read or created. Failures are logged and reported as
    ClaimStatus.FAILED; they never raise.
    """

    def __init__(self, provider):
        self.provider = provider

    def _expired(self, deadline, namespace, name):
        if deadline is not None and deadline.expired:
            LOG.warning("deadline exceeded reconciling claim %s/%s", namespace, name)
            return True
        return False

    def _timeout(self, deadline):
        return None if deadline is None else deadline.remaining()

    def ensure_replica_claim(
        self,
        namespace: str,
        desired_name: str,
        owner_name: str | None,
        deadline=None,
    ) -> ClaimStatus:
        if not namespace:
            LOG.warning("cannot reconcile claim %s: namespace unknown", desired_name)
            return ClaimStatus.FAILED

        if self._expired(deadline, namespace, desired_name):
            return ClaimStatus.FAILED

        res = self.provider.get_claim(
            namespace, desired_name, timeout=self._timeout(deadline)
        )
        if res.outcome == Outcome.OK:
            LOG.info("claim %s/%s already exists", namespace, desired_name)
            return ClaimStatus.FOUND
        if res.outcome != Outcome.NOT_FOUND:
            LOG.warning(
                "unable to look up claim %s/%s: %s", namespace, desired_name, res.reason
            )
            return ClaimStatus.FAILED

        if not owner_name:
            LOG.warning(
                "cannot create claim %s/%s: pod has no owner reference",
                namespace,
                desired_name,
            )
            return ClaimStatus.FAILED

        if self._expired(deadline, namespace, desired_name):
            return ClaimStatus.FAILED

        res = self.provider.get_workload(
            namespace, owner_name, timeout=self._timeout(deadline)
        )
        if res.outcome != Outcome.OK:
            LOG.warning(
                "unable to read statefulset %s/%s: %s",
                namespace,
                owner_name,
                res.reason,
            )
            return ClaimStatus.FAILED

        try:
            workload = StatefulSet.model_validate(res.value)
        except pydantic.ValidationError as err:
            LOG.warning(
                "unable to decode statefulset %s/%s: %s", namespace, owner_name, err
            )
            return ClaimStatus.FAILED

        if not workload.spec.volumeClaimTemplates:
            LOG.warning(
                "statefulset %s/%s has no volume claim templates", namespace, owner_name
            )
            return ClaimStatus.FAILED

        claim = PersistentVolumeClaim(
            metadata=ClaimMetadata(name=desired_name, namespace=namespace),
            spec=copy.deepcopy(workload.spec.volumeClaimTemplates[0].spec),
        )

        if self._expired(deadline, namespace, desired_name):
            return ClaimStatus.FAILED

        LOG.info("create claim %s/%s", namespace, desired_name)
        res = self.provider.create_claim(
            namespace, claim, timeout=self._timeout(deadline)
        )
        if res.outcome == Outcome.CONFLICT:
            # Another admission created it between our lookup and now.
            LOG.info("claim %s/%s was created concurrently", namespace, desired_name)
            return ClaimStatus.CREATED
        if res.outcome != Outcome.OK:
            LOG.warning(
                "unable to create claim %s/%s: %s", namespace, desired_name, res.reason
            )
            return ClaimStatus.FAILED

        return ClaimStatus.CREATED
