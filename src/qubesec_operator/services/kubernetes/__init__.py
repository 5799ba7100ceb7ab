"""Kubernetes API access."""

from .store import ClusterStore, get_cluster_store

__all__ = ["ClusterStore", "get_cluster_store"]
