#!/usr/bin/env python3
"""
Core Module for the proof service

Shared infrastructure used by microservices/proof_service.

COMPONENTS:
    - config/: dataclass configuration loaded from the environment
    - postgres_client.py: asyncpg pool wrapper
    - nats_client.py: NATS JetStream event bus
"""

__version__ = "2.0.0"
