"""Microsoft Graph client factory."""

from azure.identity import ClientSecretCredential
from msgraph import GraphServiceClient

from addinsync.core.config import get_graph_credentials

GRAPH_SCOPES = ["https://graph.microsoft.com/.default"]


def get_graph_client(tenant_id: str | None = None) -> GraphServiceClient:
    """Create a Graph client authenticated as the app (client credentials flow).

    Args:
        tenant_id: Directory to sign in to, instead of MS_GRAPH_TENANT_ID
    """
    env_tenant_id, client_id, client_secret = get_graph_credentials()
    credential = ClientSecretCredential(
        tenant_id=tenant_id or env_tenant_id,
        client_id=client_id,
        client_secret=client_secret,
    )
    return GraphServiceClient(credentials=credential, scopes=GRAPH_SCOPES)
