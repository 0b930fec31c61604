"""
Identity provider client - OAuth2 client-credentials grant per connection.
"""

import logging

import httpx

from ..models import BackendConnection

logger = logging.getLogger(__name__)


class TokenRequestError(Exception):
    """The identity provider refused to issue a token."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(f"Token request failed: {status_code} - {detail[:200]}")
        self.status_code = status_code


class ClientCredentialsTokenProvider:
    """
    Fetches bearer tokens for a connection's service principal.
    Callable, so an instance can be handed straight to TokenCache.
    """

    def __init__(
        self,
        authority_url: str = "https://login.microsoftonline.com",
        scope: str = "https://analysis.windows.net/powerbi/api/.default",
        timeout: float = 30.0,
    ):
        self.authority_url = authority_url.rstrip("/")
        self.scope = scope
        self.timeout = timeout

    def token_url(self, tenant_id: str) -> str:
        return f"{self.authority_url}/{tenant_id}/oauth2/v2.0/token"

    async def __call__(self, connection: BackendConnection) -> str:
        form = {
            "grant_type": "client_credentials",
            "client_id": connection.client_id,
            "client_secret": connection.client_secret,
            "scope": self.scope,
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(self.token_url(connection.tenant_id), data=form)

        if resp.status_code >= 400:
            raise TokenRequestError(resp.status_code, resp.text)

        logger.info(
            "Issued analytics access token",
            extra={"extra_fields": {"connection_id": connection.id}}
        )
        return resp.json()["access_token"]
