"""Cluster access layer.

Submodules:
    base -- ClusterAPI: the get/create/update/delete contract.
    kube -- KubeClusterAPI: kubernetes-asyncio implementation.
"""

from ingressmgr.cluster.base import ClusterAPI

__all__ = ["ClusterAPI"]
