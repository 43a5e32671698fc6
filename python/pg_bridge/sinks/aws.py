"""boto3 client construction shared by the SNS and Kinesis sinks."""

from __future__ import annotations

from typing import Any

import boto3
from botocore.client import BaseClient


def get_boto3_client(
    service_name: str,
    region_name: str | None = None,
    endpoint_url: str | None = None,
    session_config: dict[str, Any] | None = None,
) -> BaseClient:
    """Create a boto3 client for the given service.

    Credentials come from the default boto3 chain (environment, shared
    config, instance role).

    Args:
        service_name: AWS service name (e.g., 'sns')
        region_name: Optional region override
        endpoint_url: Optional endpoint override (e.g., localstack)
        session_config: Optional extra boto3 session kwargs

    Returns:
        botocore client instance
    """
    session_config = dict(session_config or {})
    if region_name:
        session_config["region_name"] = region_name

    client_config: dict[str, Any] = {}
    if endpoint_url:
        client_config["endpoint_url"] = endpoint_url

    session = boto3.Session(**session_config)
    return session.client(service_name, **client_config)
