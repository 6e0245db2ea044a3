"""Reconciliation engine package."""

from ingressmgr.reconciler.engine import Reconciler

__all__ = ["Reconciler"]
