"""IAM policy documents used by the AWS adapter."""

from __future__ import annotations

from fragments.core.hasher import compact_json

DEFAULT_ASSUME_LAMBDA_EXEC_POLICY = """{
  "Version": "2012-10-17",
  "Statement": [
    {
      "Effect": "Allow",
      "Principal": {
        "Service": "lambda.amazonaws.com"
      },
      "Action": "sts:AssumeRole"
    }
  ]
}"""


def assume_lambda_exec_policy() -> str:
    """The default trust policy, compacted the way it is sent to IAM."""
    return compact_json(DEFAULT_ASSUME_LAMBDA_EXEC_POLICY)
