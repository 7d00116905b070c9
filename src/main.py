"""Main application entry point for the food ordering core.

This module provides the FastAPI application factory and configuration
for running the service locally or in production.
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


def get_dynamodb_resource() -> Any:
    """Create DynamoDB resource with appropriate configuration.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    # Check for local DynamoDB endpoint (for development)
    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        return boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )

    logger.info(f"Using AWS DynamoDB in region {region}")
    return boto3.resource("dynamodb", region_name=region)


def create_gateway_client() -> ResourceGatewayClient:
    """Create the resource gateway client from environment variables.

    Raises:
        ValueError: If RESOURCE_GATEWAY_BASE_URL is not set
    """
    base_url = os.getenv("RESOURCE_GATEWAY_BASE_URL")
    if not base_url:
        raise ValueError("RESOURCE_GATEWAY_BASE_URL must be set in environment")

    timeout = float(os.getenv("RESOURCE_GATEWAY_TIMEOUT_SECONDS", "10"))
    logger.info(f"Resource gateway configured - URL: {base_url}")
    return ResourceGatewayClient(base_url=base_url, timeout_seconds=timeout)


def create_credential_service(user_repository: UserRepository) -> CredentialService:
    """Create the credential service from environment variables.

    Raises:
        ValueError: If CREDENTIAL_SECRET_KEY is not set
    """
    secret_key = os.getenv("CREDENTIAL_SECRET_KEY")
    if not secret_key:
        raise ValueError("CREDENTIAL_SECRET_KEY must be set in environment")

    ttl_seconds = int(os.getenv("CREDENTIAL_TTL_SECONDS", str(DEFAULT_TTL_SECONDS)))
    return CredentialService(
        secret_key=secret_key, user_repository=user_repository, ttl_seconds=ttl_seconds
    )


def create_application() -> FastAPI:
    """Create and configure the FastAPI application with all dependencies.

    Returns:
        Configured FastAPI application instance
    """
    # Configure structured logging
    log_level = os.getenv("LOG_LEVEL", "INFO")
    configure_logging(log_level)

    logger.info("Initializing food ordering core...")

    dynamodb_resource = get_dynamodb_resource()
    users_table = os.getenv("DYNAMODB_USERS_TABLE", "food-ordering-users")
    user_repository = UserRepository(dynamodb_resource=dynamodb_resource, table_name=users_table)

    logger.info(f"User directory configured - table: {users_table}")

    gateway = create_gateway_client()
    credential_service = create_credential_service(user_repository)

    app = create_app(
        order_service=OrderService(gateway=gateway),
        payment_method_service=PaymentMethodService(gateway=gateway),
        credential_service=credential_service,
    )
    setup_observability(app)

    logger.info("Food ordering core initialized successfully")

    return app


# Create the FastAPI application instance (only when not in test mode)
# This prevents the app from being created during test collection
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    # Create a placeholder app for test imports
    app = FastAPI()


if __name__ == "__main__":
    """Run the application with uvicorn when executed directly."""
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")
    logger.info(f"API documentation available at http://{host}:{port}/docs")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
