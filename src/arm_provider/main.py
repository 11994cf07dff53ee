"""Process wiring for the ARM provider.

Authentication uses managed identity only: a user-assigned identity when
AZURE_CLIENT_ID is set, otherwise the system-assigned one. No secrets are
read from the environment.
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC

from azure.identity import ManagedIdentityCredential
from azure.mgmt.resource import ResourceManagementClient

from .client import ArmResourceClient, KeyVaultSecretsClient
from .config import LogFormat, ProviderConfig
from .registry import HandlerRegistry, build_registry

# LogRecord attributes that are not user-supplied extras
_RESERVED_RECORD_KEYS = frozenset(
    (
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    )
)


def setup_logging(log_format: LogFormat = LogFormat.JSON, level: str = "INFO") -> None:
    """Configure logging on stderr; stdout carries command output."""
    import json
    from datetime import datetime

    class JsonFormatter(logging.Formatter):
        """Format logs as JSON for structured logging."""

        def format(self, record: logging.LogRecord) -> str:
            log_data = {
                "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
                "level": record.levelname,
                "message": record.getMessage(),
                "logger": record.name,
            }

            for key, value in record.__dict__.items():
                if key not in _RESERVED_RECORD_KEYS:
                    log_data[key] = value

            if record.exc_info:
                log_data["exception"] = self.formatException(record.exc_info)

            return json.dumps(log_data, default=str)

    handler = logging.StreamHandler(sys.stderr)
    if log_format == LogFormat.JSON:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    # Reduce noise from Azure SDK
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_credential(config: ProviderConfig) -> ManagedIdentityCredential:
    logger = logging.getLogger(__name__)
    if config.client_id:
        logger.info(
            "Using user-assigned managed identity", extra={"client_id": config.client_id}
        )
        return ManagedIdentityCredential(client_id=config.client_id)
    logger.info("Using system-assigned managed identity")
    return ManagedIdentityCredential()


def build_clients(
    config: ProviderConfig, credential: ManagedIdentityCredential | None = None
) -> tuple[ArmResourceClient, KeyVaultSecretsClient]:
    """Create the ARM and Key Vault clients sharing one credential."""
    if credential is None:
        credential = build_credential(config)

    resource_client = ResourceManagementClient(
        credential=credential,
        subscription_id=config.subscription_id,
        base_url=config.arm_endpoint,
    )
    arm_client = ArmResourceClient(resource_client, poll_interval=config.poll_interval_seconds)
    secrets_client = KeyVaultSecretsClient(
        credential, poll_interval=config.poll_interval_seconds
    )
    return arm_client, secrets_client


def create_registry(config: ProviderConfig) -> HandlerRegistry:
    """Registry of every handler, wired to live Azure clients."""
    arm_client, secrets_client = build_clients(config)
    return build_registry(config, arm_client, secrets_client)
