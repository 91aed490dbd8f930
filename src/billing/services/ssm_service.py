"""Stripe credential lookup.

A credential is taken from its environment variable when that is set (local
runs, tests). Deployed stages read SecureString parameters named
``/glowup/{environment}/stripe/...`` from AWS SSM Parameter Store instead.
"""

import logging
import os
from functools import lru_cache

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

PARAMETER_PREFIX = "/glowup"

_CLIENT_ERROR_MESSAGES = {
    "ParameterNotFound": "SSM parameter not found: {name}",
    "AccessDeniedException": (
        "Access denied to SSM parameter: {name}. Check IAM permissions for ssm:GetParameter."
    ),
}


class SSMServiceError(Exception):
    """A secret is missing from both the environment and SSM, or SSM failed."""


def parameter_path(environment: str, name: str) -> str:
    """``parameter_path("dev", "stripe/secret_key")`` -> ``/glowup/dev/stripe/secret_key``"""
    return "/".join((PARAMETER_PREFIX, environment, name.lstrip("/")))


class SSMService:
    """Environment-first secret resolver backed by SSM.

    Decrypted values are memoised per process; the boto3 client is only built
    on the first lookup that actually reaches SSM.
    """

    def __init__(self, environment: str | None = None) -> None:
        self._environment = environment or os.environ.get("ENVIRONMENT", "dev")
        self._client = None
        self._cache: dict[str, str] = {}

    @property
    def environment(self) -> str:
        return self._environment

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client("ssm")
        return self._client

    def get_parameter(self, name: str, *, use_cache: bool = True) -> str:
        """Fetch and decrypt the parameter at the absolute path ``name``.

        Raises:
            SSMServiceError: The parameter is missing, unreadable, or SSM failed.
        """
        if use_cache and name in self._cache:
            return self._cache[name]

        logger.info("Reading %s from SSM", name)
        try:
            response = self.client.get_parameter(Name=name, WithDecryption=True)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            template = _CLIENT_ERROR_MESSAGES.get(code, "Failed to retrieve SSM parameter {name}: {error}")
            raise SSMServiceError(template.format(name=name, error=e)) from e

        self._cache[name] = value = response["Parameter"]["Value"]
        return value

    def get_secret(self, name: str, *, env_var: str | None = None) -> str:
        """Return ``env_var``'s value if non-empty, else the SSM parameter ``name``.

        ``name`` is relative to the environment prefix, e.g. ``"stripe/webhook_secret"``.
        """
        override = os.environ.get(env_var) if env_var else None
        if override:
            return override
        return self.get_parameter(parameter_path(self._environment, name))

    def clear_cache(self) -> None:
        self._cache.clear()


@lru_cache(maxsize=1)
def get_ssm_service() -> SSMService:
    return SSMService()
