#!/usr/bin/env python3
"""External service configuration

Third-party and peer services the proof service calls: the direct-mail
provider (Lob) and the scan-ingestion service.
"""
import os
from dataclasses import dataclass, field
from typing import Any, Dict

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


@dataclass
class ServiceConfig:
    """External service endpoints"""

    # ===========================================
    # Direct-mail provider (Lob)
    # ===========================================
    lob_api_url: str = "https://api.lob.com/v1"
    lob_timeout: float = 30.0
    postcard_size: str = "6x9"
    mail_type: str = "usps_first_class"

    # Return address printed on every postcard
    sender_address: Dict[str, Any] = field(default_factory=dict)

    # ===========================================
    # Scan ingestion
    # ===========================================
    scan_events_api_url: str = "http://localhost:8300/api/scan-events"
    scan_timeout: float = 60.0

    # ===========================================
    # Artwork URLs
    # ===========================================
    presign_ttl_seconds: int = 3600

    @classmethod
    def from_env(cls) -> 'ServiceConfig':
        """Load service configuration from environment variables"""
        sender = {
            "name": os.getenv("LOB_FROM_NAME", ""),
            "address_line1": os.getenv("LOB_FROM_ADDRESS_LINE1", ""),
            "address_line2": os.getenv("LOB_FROM_ADDRESS_LINE2", ""),
            "address_city": os.getenv("LOB_FROM_CITY", ""),
            "address_state": os.getenv("LOB_FROM_STATE", ""),
            "address_zip": os.getenv("LOB_FROM_ZIP", ""),
            "address_country": os.getenv("LOB_FROM_COUNTRY", "US"),
        }
        return cls(
            lob_api_url=os.getenv("LOB_API_URL", "https://api.lob.com/v1"),
            lob_timeout=_float(os.getenv("LOB_TIMEOUT", "30"), 30.0),
            postcard_size=os.getenv("LOB_POSTCARD_SIZE", "6x9"),
            mail_type=os.getenv("LOB_MAIL_TYPE", "usps_first_class"),
            sender_address={k: v for k, v in sender.items() if v},
            scan_events_api_url=os.getenv("SCAN_EVENTS_API_URL", "http://localhost:8300/api/scan-events"),
            scan_timeout=_float(os.getenv("SCAN_TIMEOUT", "60"), 60.0),
            presign_ttl_seconds=_int(os.getenv("PRESIGN_TTL_SECONDS", "3600"), 3600),
        )
