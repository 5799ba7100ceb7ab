"""Narrow wrapper over the Kubernetes API used by every reconciler."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from ... import metrics
from ...constants import API_GROUP, API_VERSION, FIELD_MANAGER, PLURALS
from ...utils.rate_limit import handle_rate_limit_error, rate_limit_k8s


class ClusterStore:
    """Reads and writes custom resources and secrets.

    Objects are returned as plain dictionaries in API (camelCase) form. Missing
    objects are reported as None; every other API error, including 409
    conflicts, propagates as ``ApiException``.
    """

    def __init__(
        self,
        custom_api: client.CustomObjectsApi | None = None,
        core_api: client.CoreV1Api | None = None,
    ) -> None:
        self.custom_api = custom_api or client.CustomObjectsApi()
        self.core_api = core_api or client.CoreV1Api()

    @classmethod
    def from_environment(cls) -> ClusterStore:
        """Load in-cluster configuration, falling back to kubeconfig."""
        try:
            config.load_incluster_config()
        except config.ConfigException:
            config.load_kube_config()
        return cls()

    def _call(self, operation: str, fn: Callable[..., Any], **kwargs: Any) -> Any:
        attempt = 0
        while True:
            start_time = time.time()
            try:
                result = rate_limit_k8s(fn)(**kwargs)
                metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
                return result
            except ApiException as e:
                metrics.api_call_total.labels(api_type="k8s", operation=operation, result="error").inc()
                if handle_rate_limit_error(e, attempt):
                    attempt += 1
                    continue
                raise
            finally:
                duration = time.time() - start_time
                metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(duration)

    def _to_dict(self, obj: Any) -> dict[str, Any]:
        if isinstance(obj, dict):
            return obj
        return self.core_api.api_client.sanitize_for_serialization(obj)

    def get_custom_object(self, kind: str, namespace: str, name: str) -> dict[str, Any] | None:
        """Fetch a custom resource, or None if it does not exist."""
        try:
            return self._call(
                "get_custom_object",
                self.custom_api.get_namespaced_custom_object,
                group=API_GROUP,
                version=API_VERSION,
                namespace=namespace,
                plural=PLURALS[kind],
                name=name,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    def replace_status(self, kind: str, namespace: str, name: str, body: dict[str, Any]) -> dict[str, Any]:
        """Replace the status subresource.

        ``body`` must carry ``metadata.resourceVersion``; a stale version is
        rejected by the API server with 409.
        """
        return self._call(
            "replace_status",
            self.custom_api.replace_namespaced_custom_object_status,
            group=API_GROUP,
            version=API_VERSION,
            namespace=namespace,
            plural=PLURALS[kind],
            name=name,
            body=body,
        )

    def read_secret(self, namespace: str, name: str) -> dict[str, Any] | None:
        """Read a secret, or None if it does not exist."""
        try:
            secret = self._call(
                "read_secret",
                self.core_api.read_namespaced_secret,
                name=name,
                namespace=namespace,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise
        return self._to_dict(secret)

    def create_secret(self, namespace: str, body: dict[str, Any]) -> dict[str, Any]:
        """Create a secret; an existing one is rejected with 409."""
        secret = self._call(
            "create_secret",
            self.core_api.create_namespaced_secret,
            namespace=namespace,
            body=body,
            field_manager=FIELD_MANAGER,
        )
        return self._to_dict(secret)

    def replace_secret(self, namespace: str, name: str, body: dict[str, Any]) -> dict[str, Any]:
        """Replace a secret guarded by the resourceVersion in ``body``."""
        secret = self._call(
            "replace_secret",
            self.core_api.replace_namespaced_secret,
            name=name,
            namespace=namespace,
            body=body,
            field_manager=FIELD_MANAGER,
        )
        return self._to_dict(secret)


_store: ClusterStore | None = None
_store_lock = threading.Lock()


def get_cluster_store() -> ClusterStore:
    """Return the process-wide cluster store, creating it on first use."""
    global _store
    with _store_lock:
        if _store is None:
            _store = ClusterStore.from_environment()
        return _store
