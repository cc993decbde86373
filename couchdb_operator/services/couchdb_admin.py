"""
CouchDB administrative API client.

Only the calls the operator needs are implemented: adding a node to a
cluster through the seed node's /_cluster_setup endpoint.
"""
from typing import Any, Dict, Optional

import httpx

from couchdb_operator.config.logging import get_logger
from couchdb_operator.exceptions import CouchDBAdminError
from couchdb_operator.services.credentials import AdminCredentials

logger = get_logger(__name__)

ADMIN_PORT = 5984
CLUSTER_SETUP_PATH = "/_cluster_setup"


class CouchDBAdminClient:
    """
    Client for CouchDB's cluster setup API.

    One pooled HTTP client is shared for all seeds; the seed address and
    credentials are supplied per call.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            transport=transport,
            headers={
                "Content-Type": "application/json",
            },
        )

    async def add_node(
        self,
        seed_address: str,
        host: str,
        credentials: AdminCredentials,
        port: int = ADMIN_PORT,
    ) -> Dict[str, Any]:
        """
        Ask the seed node to add another node to its cluster.

        Args:
            seed_address: IP address of the seed pod
            host: IP address of the node to add
            credentials: Admin credentials, used both for auth and the payload
            port: Admin port of the node to add

        Returns:
            The decoded JSON response body

        Raises:
            CouchDBAdminError: On transport failure or a non-success response
        """
        url = f"http://{seed_address}:{ADMIN_PORT}{CLUSTER_SETUP_PATH}"
        password = credentials.password.get_secret_value()
        body = {
            "action": "add_node",
            "host": host,
            "port": port,
            "username": credentials.username,
            "password": password,
        }

        try:
            response = await self.client.post(
                url,
                json=body,
                auth=(credentials.username, password),
            )
        except httpx.HTTPError as e:
            raise CouchDBAdminError("transport_error", str(e) or type(e).__name__) from e

        if not response.is_success:
            raise _error_from_response(response)

        logger.debug(
            "couchdb_add_node_response",
            seed=seed_address,
            host=host,
            status_code=response.status_code,
        )
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()


def _error_from_response(response: httpx.Response) -> CouchDBAdminError:
    error = f"http_{response.status_code}"
    reason = response.reason_phrase or response.text
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error") or error
        reason = payload.get("reason") or reason
    return CouchDBAdminError(error, reason, status_code=response.status_code)
