#!/usr/bin/env python3
"""Proof service main configuration

Combines all sub-configs into a single settings object.
"""
import os
from dataclasses import dataclass, field

from .infra_config import InfraConfig
from .logging_config import LoggingConfig
from .resize_config import ResizeConfig
from .service_config import ServiceConfig


def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


@dataclass
class AppConfig:
    """Top-level configuration for the proof service"""
    service_name: str = "proof_service"
    service_port: int = 8250
    environment: str = "development"
    debug: bool = False

    infrastructure: InfraConfig = field(default_factory=InfraConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    services: ServiceConfig = field(default_factory=ServiceConfig)
    resize: ResizeConfig = field(default_factory=ResizeConfig)

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Load complete configuration from environment"""
        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        return cls(
            service_name=os.getenv("SERVICE_NAME", "proof_service"),
            service_port=_int(os.getenv("SERVICE_PORT", "8250"), 8250),
            environment=env,
            debug=os.getenv("DEBUG", "false").lower() == "true",
            infrastructure=InfraConfig.from_env(),
            logging=LoggingConfig.from_env(),
            services=ServiceConfig.from_env(),
            resize=ResizeConfig.from_env(),
        )
