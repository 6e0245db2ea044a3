"""ingress-manager: Kubernetes controller for the ``App`` custom resource."""

__version__ = "0.3.0"
