"""Target registry client resolution.

Single-account promotion writes through the same ECR client that reads the
source. Cross-account promotion assumes the well-known StackSet execution
role in the target account via STS and builds an ECR client from the
temporary credentials, scoped to the target region (defaulting to the
invoking region).

Example:
    >>> resolver = TargetClientResolver(
    ...     source_registry, session=boto3.Session(), region="us-east-1"
    ... )
    >>> target = resolver.resolve(TargetContext(account="123456789012", region="eu-west-1"))
    >>> target.account
    '123456789012'
"""

from __future__ import annotations

from typing import Any

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from deployer_core.promotion.errors import TargetClientError
from deployer_core.promotion.registry import ECRRegistry
from deployer_core.schemas.promotion import TargetContext
from deployer_core.telemetry.tracing import SPAN_RESOLVE_TARGET, traced

logger = structlog.get_logger(__name__)

EXECUTION_ROLE_NAME = "AWSCloudFormationStackSetExecutionRole"
"""Role CloudFormation StackSets assume in target accounts; promotion reuses it."""

DEFAULT_ROLE_SESSION_NAME = "deployer-promote-images"


def execution_role_arn(account: str, role_name: str = EXECUTION_ROLE_NAME) -> str:
    """Return the ARN of the execution role in ``account``.

    Example:
        >>> execution_role_arn("123456789012")
        'arn:aws:iam::123456789012:role/AWSCloudFormationStackSetExecutionRole'
    """
    return f"arn:aws:iam::{account}:role/{role_name}"


class TargetClientResolver:
    """Builds the target ECRRegistry for a promotion request.

    Args:
        source: Registry used for source reads; returned as-is in single-account mode.
        session: boto3 session holding the invoking credentials.
        region: Invoking region, the default target region.
        role_session_name: STS RoleSessionName for the assumed role.
    """

    def __init__(
        self,
        source: ECRRegistry,
        *,
        session: Any,
        region: str,
        role_session_name: str = DEFAULT_ROLE_SESSION_NAME,
    ) -> None:
        self._source = source
        self._session = session
        self._region = region
        self._role_session_name = role_session_name

    @traced(name=SPAN_RESOLVE_TARGET)
    def resolve(self, target: TargetContext) -> ECRRegistry:
        """Return a registry client for ``target``.

        Raises:
            TargetClientError: If the execution role cannot be assumed or the
                client cannot be built.
        """
        if not target.is_cross_account:
            return self._source

        account = str(target.account)
        region = target.region or self._region
        role_arn = execution_role_arn(account)
        log = logger.bind(target_account=account, target_region=region, role_arn=role_arn)

        try:
            sts = self._session.client("sts", region_name=self._region)
            response = sts.assume_role(RoleArn=role_arn, RoleSessionName=self._role_session_name)
            credentials = response["Credentials"]
            assumed = boto3.Session(
                aws_access_key_id=credentials["AccessKeyId"],
                aws_secret_access_key=credentials["SecretAccessKey"],
                aws_session_token=credentials["SessionToken"],
                region_name=region,
            )
            client = assumed.client("ecr", region_name=region)
        except (ClientError, BotoCoreError, KeyError) as e:
            raise TargetClientError(account, region, str(e)) from e

        log.info("target_client_resolved", expires_at=str(credentials.get("Expiration")))
        return ECRRegistry(client, account=account, region=region)


__all__ = [
    "DEFAULT_ROLE_SESSION_NAME",
    "EXECUTION_ROLE_NAME",
    "TargetClientResolver",
    "execution_role_arn",
]
