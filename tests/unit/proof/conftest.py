"""
Unit Test Fixtures for Proof Service

Pure functions only: no repository, no network.
"""

import pytest
from datetime import datetime, timezone

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from tests.contracts.proof.data_contract import ProofTestDataFactory


@pytest.fixture
def factory():
    """Provide ProofTestDataFactory"""
    return ProofTestDataFactory


@pytest.fixture
def received_at():
    """Fixed webhook receipt time"""
    return datetime(2026, 3, 14, 15, 9, 26, tzinfo=timezone.utc)
