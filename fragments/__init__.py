"""Fragments: declarative deployments for serverless functions.

A CLI applies function and deployment manifests to a desired-state store
(etcd), uploads changed sources through short-lived upload URLs, and a
reconciler converges cloud resources (AWS IAM roles and Lambda functions)
selected by label.
"""

__version__ = "0.1.0"
__description__ = "Declarative deployment controller for serverless functions"

from fragments.reconciler.reconciler import Reconciler
from fragments.server.server import ApplyServer
from fragments.state.service import StateService

__all__ = ["ApplyServer", "Reconciler", "StateService", "__version__"]
