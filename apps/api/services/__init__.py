"""
Services package for the VirtualDoc API
Vendor clients and long-lived helpers are built once per process and shared
through a ServiceContainer stored on `app.state.services`.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from config import Settings
from utils.cache import RedisCache, DirectoryCache
from .gemini_service import GeminiService
from .speech_service import SpeechService
from .tavus_service import TavusService
from .storage_service import StorageService
from .realtime import RealtimeHub, Channel

logger = logging.getLogger(__name__)

VENDOR_TIMEOUT = httpx.Timeout(30.0, connect=10.0)


@dataclass
class ServiceContainer:
    settings: Settings
    gemini: GeminiService
    speech: SpeechService
    tavus: TavusService
    storage: StorageService
    directory_cache: DirectoryCache
    realtime: RealtimeHub
    http_client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServiceContainer":
        http_client = httpx.AsyncClient(timeout=VENDOR_TIMEOUT)
        return cls(
            settings=settings,
            gemini=GeminiService(settings.gemini_api_key, settings.gemini_model),
            speech=SpeechService(
                settings.elevenlabs_api_key,
                settings.elevenlabs_voice_id,
                http_client,
                settings.elevenlabs_base_url,
            ),
            tavus=TavusService(
                settings.tavus_api_key,
                settings.tavus_persona_id,
                http_client,
                settings.tavus_base_url,
                settings.tavus_callback_url,
            ),
            storage=StorageService(
                settings.s3_bucket_name,
                region_name=settings.aws_region,
                aws_access_key_id=settings.aws_access_key_id,
                aws_secret_access_key=settings.aws_secret_access_key,
                endpoint_url=settings.s3_endpoint_url,
            ),
            directory_cache=DirectoryCache(RedisCache(settings.redis_url, settings.cache_enabled)),
            realtime=RealtimeHub(),
            http_client=http_client,
        )

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()
        self.directory_cache.cache.close()
        logger.info("Service container closed")


__all__ = [
    'ServiceContainer',
    'RealtimeHub',
    'Channel',
]
