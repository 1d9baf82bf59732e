"""
Proof Service Factory

Factory for creating proof service instances with proper dependency injection.
"""

import logging
from typing import Optional

from core.config import AppConfig, get_settings
from core.nats_client import NATSEventBus

from .campaign_dispatcher import CampaignDispatcher
from .clients.lob_client import LobClient
from .clients.scan_client import ScanClient
from .clients.storage_client import StorageClient
from .events.publishers import ProofEventPublisher
from .image_resizer import SizeConstrainedResizer
from .proof_lifecycle import ProofLifecycle
from .proof_repository import ProofRepository
from .proof_service import ProofService
from .scheduled_runner import ScheduledRunner

logger = logging.getLogger(__name__)


class ProofServiceFactory:
    """Factory for creating proof service components"""

    def __init__(self, config: Optional[AppConfig] = None):
        self.config = config or get_settings()
        self._repository: Optional[ProofRepository] = None
        self._nats_client: Optional[NATSEventBus] = None
        self._event_publisher: Optional[ProofEventPublisher] = None
        self._lob_client: Optional[LobClient] = None
        self._storage_client: Optional[StorageClient] = None
        self._scan_client: Optional[ScanClient] = None
        self._dispatcher: Optional[CampaignDispatcher] = None
        self._lifecycle: Optional[ProofLifecycle] = None
        self._runner: Optional[ScheduledRunner] = None
        self._service: Optional[ProofService] = None

    async def initialize(self) -> None:
        """Initialize all components"""
        logger.info("Initializing Proof Service components...")
        infra = self.config.infrastructure

        # Initialize repository
        self._repository = ProofRepository(infra)
        await self._repository.initialize()

        # Initialize NATS client
        if infra.nats_enabled:
            try:
                self._nats_client = NATSEventBus(
                    service_name=self.config.service_name,
                    config=infra,
                )
                await self._nats_client.connect()
                logger.info("NATS client connected")
            except Exception as e:
                logger.warning(f"NATS client initialization failed: {e}")
                self._nats_client = None
        else:
            logger.info("NATS disabled, events will not be published")
        self._event_publisher = ProofEventPublisher(self._nats_client)

        # Initialize external clients
        self._lob_client = LobClient(self.config.services)
        self._scan_client = ScanClient(self.config.services)
        try:
            self._storage_client = StorageClient(infra)
        except Exception as e:
            logger.warning(f"Object storage initialization failed: {e}")
            self._storage_client = None

        # Initialize domain components
        self._dispatcher = CampaignDispatcher(
            repository=self._repository,
            mail_provider=self._lob_client,
            storage=self._storage_client,
            event_publisher=self._event_publisher,
            presign_ttl_seconds=self.config.services.presign_ttl_seconds,
        )
        self._lifecycle = ProofLifecycle(
            repository=self._repository,
            scan_client=self._scan_client,
            resizer=SizeConstrainedResizer(self.config.resize),
            event_publisher=self._event_publisher,
            ceiling_bytes=self.config.resize.ceiling_bytes,
        )
        self._runner = ScheduledRunner(
            repository=self._repository,
            dispatcher=self._dispatcher,
        )
        self._service = ProofService(
            repository=self._repository,
            dispatcher=self._dispatcher,
            mail_provider=self._lob_client,
            storage=self._storage_client,
            event_publisher=self._event_publisher,
        )

        logger.info("Proof Service components initialized")

    async def close(self) -> None:
        """Close all components"""
        logger.info("Closing Proof Service components...")

        if self._nats_client:
            await self._nats_client.close()

        if self._repository:
            await self._repository.close()

        logger.info("Proof Service components closed")

    @property
    def repository(self) -> ProofRepository:
        """Get proof repository"""
        if not self._repository:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._repository

    @property
    def service(self) -> ProofService:
        """Get seed/proof service"""
        if not self._service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._service

    @property
    def lifecycle(self) -> ProofLifecycle:
        """Get proof lifecycle"""
        if not self._lifecycle:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._lifecycle

    @property
    def runner(self) -> ScheduledRunner:
        """Get scheduled runner"""
        if not self._runner:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._runner

    @property
    def nats_client(self) -> Optional[NATSEventBus]:
        """Get NATS client"""
        return self._nats_client

    @property
    def storage_client(self) -> Optional[StorageClient]:
        """Get artwork storage client"""
        return self._storage_client


# Global factory instance
_factory: Optional[ProofServiceFactory] = None


async def get_factory() -> ProofServiceFactory:
    """Get or create factory instance"""
    global _factory
    if _factory is None:
        _factory = ProofServiceFactory()
        await _factory.initialize()
    return _factory


async def close_factory() -> None:
    """Close factory instance"""
    global _factory
    if _factory:
        await _factory.close()
        _factory = None


__all__ = [
    "ProofServiceFactory",
    "get_factory",
    "close_factory",
]
