"""Logging and metrics for ingress-manager."""
