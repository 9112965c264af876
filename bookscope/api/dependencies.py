"""
Dependency injection for FastAPI routes.

Provides injectable dependencies for:
- Configuration
- Service instances (lookup client, LLM gateway, book detectors)
"""

import os
from typing import Optional
from functools import lru_cache
from dataclasses import dataclass

from fastapi import Depends
from loguru import logger

from bookscope.detection import BookDetector, DetectorVariant, create_detector
from bookscope.identification import OpenLibraryClient
from bookscope.llm import ChatGateway, LLMProvider, create_gateway


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class Settings:
    """Application settings loaded from environment."""

    # LLM
    llm_provider: str = "openai"  # openai, anthropic, mock
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    llm_model: Optional[str] = None  # provider default when unset

    # Detection
    detector_variant: str = DetectorVariant.TOOL_ORCHESTRATED.value

    # External APIs
    openlibrary_base_url: str = OpenLibraryClient.BASE_URL
    lookup_timeout_seconds: float = 10.0

    # File uploads
    max_upload_size_mb: int = 10

    # Environment
    environment: str = "development"
    debug: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            llm_provider=os.getenv("LLM_PROVIDER", cls.llm_provider),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            llm_model=os.getenv("LLM_MODEL") or None,
            detector_variant=os.getenv("DETECTOR_VARIANT", cls.detector_variant),
            openlibrary_base_url=os.getenv("OPENLIBRARY_BASE_URL", cls.openlibrary_base_url),
            lookup_timeout_seconds=float(os.getenv("LOOKUP_TIMEOUT_SECONDS", cls.lookup_timeout_seconds)),
            max_upload_size_mb=int(os.getenv("MAX_UPLOAD_SIZE_MB", cls.max_upload_size_mb)),
            environment=os.getenv("BOOKSCOPE_ENV", cls.environment),
            debug=os.getenv("DEBUG", "true").lower() == "true",
        )

    @property
    def llm_api_key(self) -> Optional[str]:
        """API key for the configured provider."""
        if self.llm_provider == LLMProvider.OPENAI.value:
            return self.openai_api_key
        if self.llm_provider == LLMProvider.ANTHROPIC.value:
            return self.anthropic_api_key
        return None

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings.from_env()


# =============================================================================
# Service Dependencies (Lazy Loading)
# =============================================================================

class ServiceContainer:
    """
    Container for lazy-loaded service instances.

    Services are initialized on first access. The lookup client and gateway
    are shared by every detector; detectors are cached per variant.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._lookup_client = None
        self._gateway = None
        self._detectors: dict[DetectorVariant, BookDetector] = {}
        self.default_variant = self._resolve_default_variant(settings.detector_variant)

    @staticmethod
    def _resolve_default_variant(value: str) -> DetectorVariant:
        """Configured detector variant, falling back to tool_orchestrated."""
        try:
            return DetectorVariant(value)
        except ValueError:
            logger.warning(
                f"Unknown DETECTOR_VARIANT '{value}'; using {DetectorVariant.TOOL_ORCHESTRATED.value}"
            )
            return DetectorVariant.TOOL_ORCHESTRATED

    @property
    def lookup_client(self) -> OpenLibraryClient:
        """Get Open Library client instance."""
        if self._lookup_client is None:
            self._lookup_client = OpenLibraryClient(
                base_url=self.settings.openlibrary_base_url,
                timeout=self.settings.lookup_timeout_seconds,
            )
        return self._lookup_client

    @property
    def gateway(self) -> ChatGateway:
        """Get LLM gateway instance."""
        if self._gateway is None:
            try:
                provider = LLMProvider(self.settings.llm_provider)
            except ValueError:
                provider = LLMProvider.OPENAI

            self._gateway = create_gateway(
                provider=provider,
                api_key=self.settings.llm_api_key,
                model=self.settings.llm_model,
            )
        return self._gateway

    def detector(self, variant: Optional[DetectorVariant] = None) -> BookDetector:
        """Get book detector for `variant` (configured default if None)."""
        variant = variant or self.default_variant
        if variant not in self._detectors:
            self._detectors[variant] = create_detector(
                variant,
                gateway=self.gateway,
                lookup_client=self.lookup_client,
            )
        return self._detectors[variant]

    async def close(self):
        """Release network clients."""
        if self._lookup_client is not None:
            await self._lookup_client.close()
        if self._gateway is not None:
            await self._gateway.close()


# Global service container
_service_container: Optional[ServiceContainer] = None


def init_services(settings: Settings) -> ServiceContainer:
    """Initialize service container."""
    global _service_container
    _service_container = ServiceContainer(settings)
    return _service_container


def get_service_container() -> ServiceContainer:
    """Get service container instance."""
    if _service_container is None:
        # Auto-initialize with default settings if not explicitly initialized
        return init_services(get_settings())
    return _service_container


# =============================================================================
# Individual Service Dependencies
# =============================================================================

def get_book_detector(
    container: ServiceContainer = Depends(get_service_container),
) -> BookDetector:
    """Dependency for the configured book detector."""
    return container.detector()
