"""
Scan Ingestion Client

Client for the scan-events service that stores photos of physical mailpieces.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from core.config import ServiceConfig

from ..models import ScanRecord
from ..protocols import ScanIngestionError

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".webp": "image/webp",
}


def content_type_for(file_path: str) -> str:
    return CONTENT_TYPES.get(os.path.splitext(file_path)[1].lower(), "image/jpeg")


class ScanClient:
    """Client for the scan-events ingestion service"""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        config = config or ServiceConfig.from_env()
        self.base_url = config.scan_events_api_url.rstrip("/")
        self.timeout = config.scan_timeout
        self._transport = transport

    async def upload_scan(
        self,
        resource_id: str,
        file_path: str,
        batch_id: Optional[str] = None,
        extra_fields: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Upload one photo as multipart/form-data"""
        fields: Dict[str, str] = {"resource_id": resource_id}
        if batch_id:
            fields["batch_id"] = batch_id
        for key, value in (extra_fields or {}).items():
            if value not in (None, ""):
                fields[key] = value

        with open(file_path, "rb") as fh:
            files = {"file": (os.path.basename(file_path), fh, content_type_for(file_path))}
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.base_url, data=fields, files=files)

        if response.is_error:
            logger.error(f"Scan events API error {response.status_code} uploading for {resource_id}: {response.text}")
            raise ScanIngestionError(
                f"Scan events API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        logger.info(f"Uploaded scan for {resource_id}: {os.path.basename(file_path)}")
        return response.json() if response.content else {}

    async def get_scans(self, resource_id: str) -> List[ScanRecord]:
        """Scans recorded for a resource, in service order"""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(f"{self.base_url}/{resource_id}")

        if response.is_error:
            logger.error(f"Scan events API error {response.status_code} listing {resource_id}: {response.text}")
            raise ScanIngestionError(
                f"Scan events API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        items = response.json().get("items") or []
        return [ScanRecord.model_validate(item) for item in items if isinstance(item, dict)]
