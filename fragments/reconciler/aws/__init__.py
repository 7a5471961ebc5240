"""AWS adapter: IAM roles and Lambda functions."""

from fragments.reconciler.aws.adapter import DEFAULT_REGION, AWSReconciler
from fragments.reconciler.aws.awslambda import LambdaData, LambdaReconciler
from fragments.reconciler.aws.iam import IAMReconciler, RoleInput
from fragments.reconciler.aws.services import ServiceProvider, SessionProvider

__all__ = [
    "AWSReconciler",
    "DEFAULT_REGION",
    "IAMReconciler",
    "LambdaData",
    "LambdaReconciler",
    "RoleInput",
    "ServiceProvider",
    "SessionProvider",
]
