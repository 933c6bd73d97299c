"""Credential loading for the Graph and Exchange Online connections.

Values come from the process environment, with a ``.env`` file in the
working directory loaded first. Exchange falls back to the Graph app
registration when no separate tenant or client ID is configured.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

GRAPH_ENV_VARS = ("MS_GRAPH_TENANT_ID", "MS_GRAPH_CLIENT_ID", "MS_GRAPH_CLIENT_SECRET")


def _missing(names: list[str], values: list[str | None]) -> list[str]:
    return [name for name, value in zip(names, values, strict=True) if not value]


def get_graph_credentials() -> tuple[str, str, str]:
    """Get MS Graph app credentials from the environment.

    Returns:
        Tuple of (tenant_id, client_id, client_secret)

    Raises:
        ValueError: Naming every MS_GRAPH_* variable that is not set
    """
    load_dotenv()

    values = [os.getenv(name) for name in GRAPH_ENV_VARS]
    missing = _missing(list(GRAPH_ENV_VARS), values)
    if missing:
        raise ValueError(f"MS Graph credentials not set. Missing: {', '.join(missing)}")

    tenant_id, client_id, client_secret = values
    return tenant_id, client_id, client_secret


@dataclass
class ExchangeCredentials:
    """App-only certificate credentials for Exchange Online PowerShell."""

    tenant_id: str
    client_id: str
    organization: str
    certificate_thumbprint: str | None = None
    certificate_path: str | None = None
    certificate_password: str | None = None


def get_exchange_credentials() -> ExchangeCredentials:
    """Get Exchange Online credentials from the environment.

    Environment variables:
        EXCHANGE_TENANT_ID: Tenant ID (falls back to MS_GRAPH_TENANT_ID)
        EXCHANGE_CLIENT_ID: App client ID (falls back to MS_GRAPH_CLIENT_ID)
        EXCHANGE_ORGANIZATION: Organization domain, e.g. contoso.onmicrosoft.com
        EXCHANGE_CERTIFICATE_THUMBPRINT: Installed certificate (Windows only)
        EXCHANGE_CERTIFICATE_PATH: .pfx certificate file
        EXCHANGE_CERTIFICATE_PASSWORD: .pfx password, empty for Key Vault certs

    Raises:
        ValueError: If a required setting is missing
    """
    load_dotenv()

    tenant_id = os.getenv("EXCHANGE_TENANT_ID") or os.getenv("MS_GRAPH_TENANT_ID")
    client_id = os.getenv("EXCHANGE_CLIENT_ID") or os.getenv("MS_GRAPH_CLIENT_ID")
    organization = os.getenv("EXCHANGE_ORGANIZATION")

    missing = _missing(
        ["EXCHANGE_TENANT_ID", "EXCHANGE_CLIENT_ID", "EXCHANGE_ORGANIZATION"],
        [tenant_id, client_id, organization],
    )
    if missing:
        raise ValueError(f"Exchange settings not set. Missing: {', '.join(missing)}")

    thumbprint = os.getenv("EXCHANGE_CERTIFICATE_THUMBPRINT")
    cert_path = os.getenv("EXCHANGE_CERTIFICATE_PATH")
    # An empty password is valid, so only an unset variable is an error
    cert_password = os.getenv("EXCHANGE_CERTIFICATE_PASSWORD")

    if not (thumbprint or cert_path):
        raise ValueError(
            "Exchange certificate not set. Set EXCHANGE_CERTIFICATE_THUMBPRINT "
            "or EXCHANGE_CERTIFICATE_PATH and EXCHANGE_CERTIFICATE_PASSWORD"
        )
    if cert_path and cert_password is None:
        raise ValueError(
            "EXCHANGE_CERTIFICATE_PASSWORD must be set with EXCHANGE_CERTIFICATE_PATH"
        )

    return ExchangeCredentials(
        tenant_id=tenant_id,
        client_id=client_id,
        organization=organization,
        certificate_thumbprint=thumbprint,
        certificate_path=cert_path,
        certificate_password=cert_password,
    )
