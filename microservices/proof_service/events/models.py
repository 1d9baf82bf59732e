"""
Proof Event Data Models

Event type definitions and data structures for proof service events.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Event Type Definitions
# =============================================================================


class ProofEventType(str, Enum):
    """
    Events published by proof_service.

    Other services should reference these when subscribing.
    """
    # Proof lifecycle events
    PROOF_CREATED = "proof.created"
    PROOF_STATUS_CHANGED = "proof.status_changed"
    PROOF_REVIEWED = "proof.reviewed"
    PROOF_PHYSICAL_COPY_ATTACHED = "proof.physical_copy_attached"
    PROOF_DELETED = "proof.deleted"

    # Seed events
    SEED_CREATED = "seed.created"
    SEED_RUN_COMPLETED = "seed.run_completed"
    SEED_DELETED = "seed.deleted"


# =============================================================================
# Event Data Models
# =============================================================================


class ProofCreatedEventData(BaseModel):
    """proof.created event data"""
    proof_id: str = Field(..., description="Proof ID")
    public_id: str = Field(..., description="Token printed on the mailpiece")
    user_id: str = Field(..., description="Owner")
    seed_id: Optional[str] = Field(None, description="Seed the proof was produced from")
    resource_id: str = Field(..., description="Mail provider resource ID")
    timestamp: Optional[datetime] = None


class ProofStatusChangedEventData(BaseModel):
    """proof.status_changed event data"""
    proof_id: str
    user_id: str
    resource_id: str
    previous_status: str
    status: str
    source: str = Field(..., description="provider_event, review or manual")
    tracking_number: Optional[str] = None
    timestamp: Optional[datetime] = None


class ProofPhysicalCopyEventData(BaseModel):
    """proof.physical_copy_attached event data"""
    proof_id: str
    user_id: str
    resource_id: str
    live_proof_url: str
    timestamp: Optional[datetime] = None


class SeedRunCompletedEventData(BaseModel):
    """seed.run_completed event data"""
    seed_id: str
    user_id: str
    outcome: str
    proof_ids: List[str] = Field(default_factory=list)
    failed_indexes: List[int] = Field(default_factory=list)
    next_run_at: Optional[datetime] = None
    timestamp: Optional[datetime] = None


class SeedDeletedEventData(BaseModel):
    """seed.deleted event data"""
    seed_id: str
    user_id: str
    orphaned_proofs: int = 0
    timestamp: Optional[datetime] = None
