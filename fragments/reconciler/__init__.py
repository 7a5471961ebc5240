"""Reconciliation of desired state against infrastructure."""

from fragments.reconciler.reconciler import Infrastructure, Reconciler

__all__ = ["Infrastructure", "Reconciler"]
