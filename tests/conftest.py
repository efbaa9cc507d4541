import pytest

import mutate

from models import MutatorConfig, Outcome, Result


TARGET_NODE = "slave-213"

WORKLOADS = {
    ("default", "redis-set"): {
        "metadata": {"name": "redis-set", "namespace": "default"},
        "spec": {
            "volumeClaimTemplates": [
                {"metadata": {"name": "data"}, "spec": {"storageClassName": "fast"}},
                {"metadata": {"name": "logs"}, "spec": {"storageClassName": "slow"}},
            ]
        },
    },
}


class FakeProvider:
    """In-memory stand-in for the Kubernetes API.

    `failures` maps a method name to the Result it should return instead of
    doing any work.
    """

    def __init__(self, claims=None, workloads=None, failures=None):
        self.claims = dict(claims or {})
        self.workloads = dict(WORKLOADS if workloads is None else workloads)
        self.failures = dict(failures or {})
        self.created = []
        self.calls = []

    def get_claim(self, namespace, name, timeout=None):
        self.calls.append(("get_claim", namespace, name))
        if "get_claim" in self.failures:
            return self.failures["get_claim"]
        if (namespace, name) in self.claims:
            return Result.ok(self.claims[(namespace, name)])
        return Result.not_found()

    def create_claim(self, namespace, claim, timeout=None):
        self.calls.append(("create_claim", namespace, claim.metadata.name))
        self.created.append(claim)
        if "create_claim" in self.failures:
            return self.failures["create_claim"]
        key = (namespace, claim.metadata.name)
        if key in self.claims:
            return Result.conflict("already exists")
        self.claims[key] = claim.model_dump(exclude_none=True)
        return Result.ok(self.claims[key])

    def get_workload(self, namespace, name, timeout=None):
        self.calls.append(("get_workload", namespace, name))
        if "get_workload" in self.failures:
            return self.failures["get_workload"]
        if (namespace, name) in self.workloads:
            return Result.ok(self.workloads[(namespace, name)])
        return Result.not_found()


def failure(reason="connection refused"):
    return Result(outcome=Outcome.FAILED, reason=reason)


@pytest.fixture()
def fake_provider():
    return FakeProvider()


@pytest.fixture()
def config():
    return MutatorConfig(target_node=TARGET_NODE)


@pytest.fixture()
def app(fake_provider):
    app = mutate.create_app(
        PROVIDER=lambda: fake_provider,
        TARGET_NODE=TARGET_NODE,
        TESTING=True,
    )
    yield app


@pytest.fixture()
def client(app):
    return app.test_client()
