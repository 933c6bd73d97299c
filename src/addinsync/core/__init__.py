"""Core utilities shared by the directory and Exchange integrations."""

from addinsync.core.config import (
    ExchangeCredentials,
    get_exchange_credentials,
    get_graph_credentials,
)
from addinsync.core.msgraph_client import get_graph_client

__all__ = [
    "ExchangeCredentials",
    "get_exchange_credentials",
    "get_graph_client",
    "get_graph_credentials",
]
