"""Shared dependency factory for the Lambda handler.

This module provides cached dependency initialization to optimize Lambda cold starts.
Dependencies are created once and reused across invocations within the same Lambda container.
"""

import logging
import os
from typing import Any

import boto3
from fastapi import FastAPI

from food_ordering_core.auth.credential_service import DEFAULT_TTL_SECONDS, CredentialService
from food_ordering_core.handlers.api_handler import create_app
from food_ordering_core.observability import configure_logging, setup_observability
from food_ordering_core.repositories.user_repository import UserRepository
from food_ordering_core.services.gateway_client import ResourceGatewayClient
from food_ordering_core.services.order_service import OrderService
from food_ordering_core.services.payment_method_service import PaymentMethodService

logger = logging.getLogger(__name__)

# Module-level caches for Lambda container reuse
_dynamodb_resource: Any | None = None
_gateway_client: ResourceGatewayClient | None = None
_credential_service: CredentialService | None = None
_fastapi_app: FastAPI | None = None


def get_dynamodb_resource() -> Any:
    """Create or retrieve cached DynamoDB resource.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    global _dynamodb_resource

    if _dynamodb_resource is not None:
        return _dynamodb_resource

    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        _dynamodb_resource = boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )
    else:
        logger.info(f"Using AWS DynamoDB in region {region}")
        _dynamodb_resource = boto3.resource("dynamodb", region_name=region)

    return _dynamodb_resource


def get_gateway_client() -> ResourceGatewayClient:
    """Create or retrieve cached resource gateway client.

    Raises:
        ValueError: If RESOURCE_GATEWAY_BASE_URL is not set
    """
    global _gateway_client

    if _gateway_client is not None:
        return _gateway_client

    base_url = os.getenv("RESOURCE_GATEWAY_BASE_URL")
    if not base_url:
        raise ValueError("RESOURCE_GATEWAY_BASE_URL must be set in environment")

    timeout = float(os.getenv("RESOURCE_GATEWAY_TIMEOUT_SECONDS", "10"))
    _gateway_client = ResourceGatewayClient(base_url=base_url, timeout_seconds=timeout)

    logger.info("Resource gateway client initialized")
    return _gateway_client


def get_credential_service() -> CredentialService:
    """Create or retrieve cached credential service.

    Raises:
        ValueError: If CREDENTIAL_SECRET_KEY is not set
    """
    global _credential_service

    if _credential_service is not None:
        return _credential_service

    secret_key = os.getenv("CREDENTIAL_SECRET_KEY")
    if not secret_key:
        raise ValueError("CREDENTIAL_SECRET_KEY must be set in environment")

    users_table = os.getenv("DYNAMODB_USERS_TABLE", "food-ordering-users")
    user_repository = UserRepository(
        dynamodb_resource=get_dynamodb_resource(), table_name=users_table
    )

    ttl_seconds = int(os.getenv("CREDENTIAL_TTL_SECONDS", str(DEFAULT_TTL_SECONDS)))
    _credential_service = CredentialService(
        secret_key=secret_key, user_repository=user_repository, ttl_seconds=ttl_seconds
    )

    logger.info("Credential service initialized")
    return _credential_service


def get_fastapi_app() -> FastAPI:
    """Create or retrieve cached FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    global _fastapi_app

    if _fastapi_app is not None:
        return _fastapi_app

    gateway = get_gateway_client()
    _fastapi_app = create_app(
        order_service=OrderService(gateway=gateway),
        payment_method_service=PaymentMethodService(gateway=gateway),
        credential_service=get_credential_service(),
    )
    setup_observability(_fastapi_app)

    logger.info("FastAPI application initialized")
    return _fastapi_app


def initialize_lambda_environment() -> None:
    """Initialize Lambda environment with logging.

    Should be called once during Lambda cold start.
    """
    log_level = os.getenv("LOG_LEVEL", "INFO")
    configure_logging(log_level)

    logger.info("Lambda environment initialized")
