"""
Lob Client

Client for the Lob direct-mail API. Every call authenticates with the seed
owner's own API key (HTTP Basic, key as user, empty password).
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from core.config import ServiceConfig

from ..models import PostcardResult
from ..protocols import MailProviderError

logger = logging.getLogger(__name__)


def _pick_thumbnail(thumbnails: List[Dict[str, Any]], index: int) -> Optional[str]:
    """Largest available rendition of one side"""
    if len(thumbnails) <= index or not isinstance(thumbnails[index], dict):
        return None
    thumb = thumbnails[index]
    return thumb.get("large") or thumb.get("medium") or thumb.get("small") or None


def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class LobClient:
    """Client for the Lob postcards API"""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        config = config or ServiceConfig.from_env()
        self.base_url = config.lob_api_url.rstrip("/")
        self.timeout = config.lob_timeout
        self.sender_address = config.sender_address
        self.postcard_size = config.postcard_size
        self.mail_type = config.mail_type
        self._transport = transport

    def _client(self, api_key: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            auth=httpx.BasicAuth(api_key, ""),
            timeout=self.timeout,
            transport=self._transport,
        )

    async def create_postcard(
        self,
        api_key: str,
        to_address: Dict[str, Any],
        front: str,
        back: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PostcardResult:
        """
        Create one postcard.

        Raises:
            MailProviderError: on any non-2xx response
        """
        payload: Dict[str, Any] = {
            "to": to_address,
            "from": self.sender_address,
            "front": front,
            "back": back,
            "size": self.postcard_size,
            "mail_type": self.mail_type,
        }
        if metadata:
            payload["metadata"] = metadata

        logger.info(
            f"Creating Lob postcard to {to_address.get('address_city')}, {to_address.get('address_state')} "
            f"size={self.postcard_size}"
        )

        async with self._client(api_key) as client:
            response = await client.post("/postcards", json=payload)

        if response.is_error:
            body = _error_body(response)
            logger.error(f"Lob API error {response.status_code} creating postcard: {body}")
            raise MailProviderError(
                f"Lob API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
                body=body,
            )

        data = response.json()
        thumbnails = data.get("thumbnails") or []

        front_thumbnail = _pick_thumbnail(thumbnails, 0)
        back_thumbnail = _pick_thumbnail(thumbnails, 1)
        if not front_thumbnail:
            logger.warning(f"No front thumbnail in Lob response for {data.get('id')}")
        elif not back_thumbnail:
            logger.warning(f"Only one thumbnail in Lob response for {data.get('id')} (expected front and back)")

        logger.info(f"Lob postcard created: {data.get('id')} status={data.get('status')}")

        return PostcardResult(
            id=data["id"],
            url=data.get("url"),
            front_thumbnail_url=front_thumbnail,
            back_thumbnail_url=back_thumbnail,
        )

    async def get_postcard(self, api_key: str, resource_id: str) -> Dict[str, Any]:
        """Fetch the full postcard record"""
        async with self._client(api_key) as client:
            response = await client.get(f"/postcards/{resource_id}")

        if response.is_error:
            body = _error_body(response)
            logger.error(f"Lob API error {response.status_code} fetching {resource_id}: {body}")
            raise MailProviderError(
                f"Lob API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
                body=body,
            )

        return response.json()

    @staticmethod
    def thumbnails_from(postcard: Dict[str, Any]) -> Dict[str, Optional[str]]:
        """Front/back thumbnail URLs from a full postcard record"""
        thumbnails = postcard.get("thumbnails") or []
        return {
            "front_thumbnail_url": _pick_thumbnail(thumbnails, 0),
            "back_thumbnail_url": _pick_thumbnail(thumbnails, 1),
        }
