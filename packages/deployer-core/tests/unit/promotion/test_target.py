"""Unit tests for TargetClientResolver."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from deployer_core.promotion.errors import TargetClientError
from deployer_core.promotion.registry import ECRRegistry
from deployer_core.promotion.target import (
    EXECUTION_ROLE_NAME,
    TargetClientResolver,
    execution_role_arn,
)
from deployer_core.schemas.promotion import TargetContext
from deployer_core.telemetry.tracing import SPAN_RESOLVE_TARGET

if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

CREDENTIALS = {
    "AccessKeyId": "ASIAEXAMPLE",
    "SecretAccessKey": "secret",
    "SessionToken": "token",
    "Expiration": datetime(2030, 1, 1, tzinfo=timezone.utc),
}


@pytest.fixture
def source() -> ECRRegistry:
    """Source registry."""
    return ECRRegistry(MagicMock(), region="us-east-1")


@pytest.fixture
def session() -> MagicMock:
    """Invoking boto3 session whose STS client grants credentials."""
    session = MagicMock()
    session.client.return_value.assume_role.return_value = {"Credentials": CREDENTIALS}
    return session


@pytest.fixture
def assumed_session_cls() -> Generator[MagicMock, None, None]:
    """Patch boto3.Session used for the assumed-role credentials."""
    with patch("deployer_core.promotion.target.boto3.Session") as session_cls:
        yield session_cls


@pytest.fixture
def resolver(source: ECRRegistry, session: MagicMock) -> TargetClientResolver:
    """Resolver in us-east-1."""
    return TargetClientResolver(source, session=session, region="us-east-1")


class TestExecutionRoleArn:
    """Tests for execution_role_arn()."""

    def test_default_role(self) -> None:
        """The StackSet execution role is used by default."""
        assert execution_role_arn("123456789012") == (
            "arn:aws:iam::123456789012:role/AWSCloudFormationStackSetExecutionRole"
        )
        assert EXECUTION_ROLE_NAME == "AWSCloudFormationStackSetExecutionRole"


class TestResolve:
    """Tests for TargetClientResolver.resolve()."""

    def test_same_account_returns_source(
        self, resolver: TargetClientResolver, source: ECRRegistry, session: MagicMock
    ) -> None:
        """Without a target account the source registry is reused, no STS call."""
        assert resolver.resolve(TargetContext()) is source
        session.client.assert_not_called()

    def test_empty_account_is_same_account(
        self, resolver: TargetClientResolver, source: ECRRegistry
    ) -> None:
        """An empty account string is treated as absent."""
        assert resolver.resolve(TargetContext(account="", region="eu-west-1")) is source

    def test_cross_account_assumes_execution_role(
        self,
        resolver: TargetClientResolver,
        session: MagicMock,
        assumed_session_cls: MagicMock,
    ) -> None:
        """The target account's execution role is assumed via STS."""
        target = resolver.resolve(TargetContext(account="123456789012", region="eu-west-1"))

        session.client.return_value.assume_role.assert_called_once_with(
            RoleArn="arn:aws:iam::123456789012:role/AWSCloudFormationStackSetExecutionRole",
            RoleSessionName="deployer-promote-images",
        )
        assumed_session_cls.assert_called_once_with(
            aws_access_key_id="ASIAEXAMPLE",
            aws_secret_access_key="secret",
            aws_session_token="token",
            region_name="eu-west-1",
        )
        assumed_session_cls.return_value.client.assert_called_once_with(
            "ecr", region_name="eu-west-1"
        )
        assert target.client is assumed_session_cls.return_value.client.return_value
        assert target.account == "123456789012"
        assert target.region == "eu-west-1"

    def test_region_defaults_to_invoking_region(
        self,
        resolver: TargetClientResolver,
        assumed_session_cls: MagicMock,
    ) -> None:
        """Without a target region the invoking region is used."""
        target = resolver.resolve(TargetContext(account="123456789012"))

        assert target.region == "us-east-1"
        assumed_session_cls.return_value.client.assert_called_once_with(
            "ecr", region_name="us-east-1"
        )

    def test_custom_session_name(
        self,
        source: ECRRegistry,
        session: MagicMock,
        assumed_session_cls: MagicMock,
    ) -> None:
        """The configured RoleSessionName is sent to STS."""
        resolver = TargetClientResolver(
            source, session=session, region="us-east-1", role_session_name="ci-run-42"
        )

        resolver.resolve(TargetContext(account="123456789012"))

        kwargs = session.client.return_value.assume_role.call_args.kwargs
        assert kwargs["RoleSessionName"] == "ci-run-42"

    def test_assume_role_denied_raises(
        self,
        resolver: TargetClientResolver,
        session: MagicMock,
        make_client_error: Callable[..., ClientError],
    ) -> None:
        """An STS failure raises TargetClientError with exit code 2."""
        session.client.return_value.assume_role.side_effect = make_client_error(
            "AccessDenied", "AssumeRole"
        )

        with pytest.raises(TargetClientError) as exc_info:
            resolver.resolve(TargetContext(account="123456789012", region="eu-west-1"))

        assert exc_info.value.account == "123456789012"
        assert exc_info.value.region == "eu-west-1"
        assert exc_info.value.exit_code == 2
        assert "AccessDenied" in str(exc_info.value)

    def test_malformed_credentials_raise(
        self, resolver: TargetClientResolver, session: MagicMock
    ) -> None:
        """A response without credentials raises TargetClientError."""
        session.client.return_value.assume_role.return_value = {}

        with pytest.raises(TargetClientError):
            resolver.resolve(TargetContext(account="123456789012"))

    def test_resolve_is_traced(
        self,
        resolver: TargetClientResolver,
        assumed_session_cls: MagicMock,
        span_exporter: InMemorySpanExporter,
    ) -> None:
        """Resolution runs inside its own span."""
        resolver.resolve(TargetContext(account="123456789012"))

        names = [span.name for span in span_exporter.get_finished_spans()]
        assert names == [SPAN_RESOLVE_TARGET]
