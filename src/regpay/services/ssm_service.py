"""Gateway credentials from AWS SSM Parameter Store.

Secrets live under ``/regpay/<environment>/<gateway>/<name>``:

    /regpay/dev/midtrans/server_key
    /regpay/dev/ipaymu/va
    /regpay/dev/ipaymu/api_key

Values are decrypted and held in a process-wide cache so a warm Lambda only
pays for the first lookup.
"""

from functools import lru_cache
from typing import ClassVar

import boto3
from botocore.exceptions import ClientError

from regpay.models.enums import PaymentGateway
from regpay.utils.logging import get_logger

logger = get_logger(__name__)

PARAMETER_ROOT = "/regpay"

_CLIENT_ERROR_MESSAGES = {
    "ParameterNotFound": "SSM parameter not found: {name}",
    "AccessDeniedException": (
        "Access denied to SSM parameter: {name}. Check IAM permissions for ssm:GetParameter."
    ),
}


class SSMServiceError(Exception):
    """Raised when a parameter cannot be read."""


def gateway_parameter_path(environment: str, gateway: PaymentGateway | str, name: str) -> str:
    """Build the parameter path for one gateway credential."""
    gateway_name = gateway.value if isinstance(gateway, PaymentGateway) else gateway
    return f"{PARAMETER_ROOT}/{environment}/{gateway_name.lower()}/{name}"


class SSMService:
    """Cached reader for SecureString parameters."""

    _instance: ClassVar["SSMService | None"] = None
    _cache: ClassVar[dict[str, str]] = {}

    def __init__(self) -> None:
        self._client = boto3.client("ssm")

    @classmethod
    def get_instance(cls) -> "SSMService":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def get_parameter(self, name: str, *, use_cache: bool = True) -> str:
        """Read a decrypted parameter value.

        Raises:
            SSMServiceError: If the parameter is missing or unreadable.
        """
        cached = self._cache.get(name) if use_cache else None
        if cached is not None:
            return cached

        logger.info("Fetching SSM parameter: %s", name)
        try:
            response = self._client.get_parameter(Name=name, WithDecryption=True)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            template = _CLIENT_ERROR_MESSAGES.get(
                error_code, "Failed to retrieve SSM parameter {name}: {error}"
            )
            raise SSMServiceError(template.format(name=name, error=e)) from e

        value: str = response["Parameter"]["Value"]
        self._cache[name] = value
        return value

    def get_gateway_secret(
        self, gateway: PaymentGateway | str, name: str, environment: str
    ) -> str:
        """Read one credential of a payment gateway for an environment."""
        return self.get_parameter(gateway_parameter_path(environment, gateway, name))

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("SSM parameter cache cleared")


@lru_cache(maxsize=1)
def get_ssm_service() -> SSMService:
    """Get the shared SSMService instance."""
    return SSMService.get_instance()
