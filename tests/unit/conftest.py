"""Shared fixtures for unit tests."""

from __future__ import annotations

import base64
import copy
import uuid
from typing import Any
from unittest.mock import patch

import pytest
from kubernetes.client.exceptions import ApiException

from qubesec_operator.constants import API_GROUP_VERSION
from qubesec_operator.services.crypto import PQCProvider


class FakeClusterStore:
    """In-memory stand-in for ClusterStore.

    Every write bumps a global resourceVersion and writes carrying a stale
    version are rejected with 409, like the API server does. Deleting a
    custom object garbage-collects the secrets it controls.
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str], dict[str, Any]] = {}
        self.secrets: dict[tuple[str, str], dict[str, Any]] = {}
        self.status_writes = 0
        self.secret_creates = 0
        self.secret_replaces = 0
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    # Test helpers

    def add_object(
        self,
        kind: str,
        name: str,
        spec: dict[str, Any] | None = None,
        namespace: str = "default",
        status: dict[str, Any] | None = None,
        generation: int = 1,
    ) -> dict[str, Any]:
        body = {
            "apiVersion": API_GROUP_VERSION,
            "kind": kind,
            "metadata": {
                "name": name,
                "namespace": namespace,
                "uid": str(uuid.uuid4()),
                "generation": generation,
                "resourceVersion": self._next_version(),
            },
            "spec": spec or {},
        }
        if status is not None:
            body["status"] = status
        self.objects[(kind, namespace, name)] = body
        return copy.deepcopy(body)

    def update_spec(self, kind: str, name: str, spec: dict[str, Any], namespace: str = "default") -> None:
        body = self.objects[(kind, namespace, name)]
        body["spec"] = spec
        body["metadata"]["generation"] += 1
        body["metadata"]["resourceVersion"] = self._next_version()

    def status_of(self, kind: str, name: str, namespace: str = "default") -> dict[str, Any]:
        return copy.deepcopy(self.objects[(kind, namespace, name)].get("status") or {})

    def uid_of(self, kind: str, name: str, namespace: str = "default") -> str:
        return self.objects[(kind, namespace, name)]["metadata"]["uid"]

    def delete_object(self, kind: str, name: str, namespace: str = "default") -> None:
        body = self.objects.pop((kind, namespace, name))
        uid = body["metadata"]["uid"]
        for key, secret in list(self.secrets.items()):
            refs = secret["metadata"].get("ownerReferences") or []
            if any(ref.get("uid") == uid for ref in refs):
                del self.secrets[key]

    def add_secret(
        self,
        name: str,
        data: dict[str, bytes],
        namespace: str = "default",
        owner_uid: str | None = None,
    ) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "name": name,
            "namespace": namespace,
            "resourceVersion": self._next_version(),
        }
        if owner_uid is not None:
            metadata["ownerReferences"] = [{"uid": owner_uid, "controller": True, "kind": "Other", "name": "other"}]
        secret = {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": metadata,
            "type": "Opaque",
            "data": {key: base64.b64encode(value).decode("ascii") for key, value in data.items()},
        }
        self.secrets[(namespace, name)] = secret
        return copy.deepcopy(secret)

    def secret_data(self, name: str, namespace: str = "default") -> dict[str, bytes]:
        secret = self.secrets[(namespace, name)]
        return {key: base64.b64decode(value) for key, value in (secret.get("data") or {}).items()}

    def delete_secret(self, name: str, namespace: str = "default") -> None:
        del self.secrets[(namespace, name)]

    # Store interface

    def get_custom_object(self, kind: str, namespace: str, name: str) -> dict[str, Any] | None:
        body = self.objects.get((kind, namespace, name))
        return copy.deepcopy(body) if body is not None else None

    def replace_status(self, kind: str, namespace: str, name: str, body: dict[str, Any]) -> dict[str, Any]:
        current = self.objects.get((kind, namespace, name))
        if current is None:
            raise ApiException(status=404, reason="Not Found")
        if body["metadata"].get("resourceVersion") != current["metadata"]["resourceVersion"]:
            raise ApiException(status=409, reason="Conflict")
        current["status"] = copy.deepcopy(body.get("status"))
        current["metadata"]["resourceVersion"] = self._next_version()
        self.status_writes += 1
        return copy.deepcopy(current)

    def read_secret(self, namespace: str, name: str) -> dict[str, Any] | None:
        secret = self.secrets.get((namespace, name))
        return copy.deepcopy(secret) if secret is not None else None

    def create_secret(self, namespace: str, body: dict[str, Any]) -> dict[str, Any]:
        name = body["metadata"]["name"]
        if (namespace, name) in self.secrets:
            raise ApiException(status=409, reason="AlreadyExists")
        secret = copy.deepcopy(body)
        secret["metadata"]["resourceVersion"] = self._next_version()
        self.secrets[(namespace, name)] = secret
        self.secret_creates += 1
        return copy.deepcopy(secret)

    def replace_secret(self, namespace: str, name: str, body: dict[str, Any]) -> dict[str, Any]:
        current = self.secrets.get((namespace, name))
        if current is None:
            raise ApiException(status=404, reason="Not Found")
        if body["metadata"].get("resourceVersion") != current["metadata"]["resourceVersion"]:
            raise ApiException(status=409, reason="Conflict")
        secret = copy.deepcopy(body)
        secret["metadata"]["resourceVersion"] = self._next_version()
        self.secrets[(namespace, name)] = secret
        self.secret_replaces += 1
        return copy.deepcopy(secret)


@pytest.fixture
def store() -> FakeClusterStore:
    """Empty in-memory cluster."""
    return FakeClusterStore()


@pytest.fixture(scope="session")
def provider() -> PQCProvider:
    """Real post-quantum provider."""
    return PQCProvider()


@pytest.fixture(autouse=True)
def kopf_events():
    """Capture Kubernetes events instead of posting them."""
    with patch("qubesec_operator.utils.events.kopf.event") as mock_event:
        yield mock_event


@pytest.fixture
def event_reasons(kopf_events):
    """Return a function listing the reasons of all captured events."""
    def reasons() -> list[str]:
        return [call.kwargs["reason"] for call in kopf_events.call_args_list]

    return reasons
