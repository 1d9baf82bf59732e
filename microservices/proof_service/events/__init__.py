"""
Proof Service Events

Event models and publisher for proof service.
"""

from .models import (
    ProofEventType,
    ProofCreatedEventData,
    ProofStatusChangedEventData,
    ProofPhysicalCopyEventData,
    SeedRunCompletedEventData,
    SeedDeletedEventData,
)
from .publishers import ProofEventPublisher

__all__ = [
    # Event Types
    "ProofEventType",
    # Event Data Models
    "ProofCreatedEventData",
    "ProofStatusChangedEventData",
    "ProofPhysicalCopyEventData",
    "SeedRunCompletedEventData",
    "SeedDeletedEventData",
    # Publisher
    "ProofEventPublisher",
]
