"""
Runtime configuration for the VirtualDoc API.
Vendor keys are optional: a missing key puts that integration in mock mode.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class Settings:
    """Application settings loaded from the environment"""
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"

    elevenlabs_api_key: Optional[str] = None
    elevenlabs_voice_id: str = "21m00Tcm4TlvDq8ikWAM"
    elevenlabs_base_url: str = "https://api.elevenlabs.io"

    tavus_api_key: Optional[str] = None
    tavus_persona_id: str = "p9863a04af01"
    tavus_base_url: str = "https://tavusapi.com"
    tavus_callback_url: Optional[str] = None

    s3_bucket_name: Optional[str] = None
    aws_region: str = "us-east-1"
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    s3_endpoint_url: Optional[str] = None

    redis_url: str = "redis://localhost:6379/0"
    cache_enabled: bool = True

    frontend_url: str = "http://localhost:5173"
    operator_api_key: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Load configuration from environment variables (and a local .env file)"""
        load_dotenv()
        settings = cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            gemini_model=os.getenv("GEMINI_MODEL", cls.gemini_model),
            elevenlabs_api_key=os.getenv("ELEVENLABS_API_KEY") or None,
            elevenlabs_voice_id=os.getenv("ELEVENLABS_VOICE_ID", cls.elevenlabs_voice_id),
            tavus_api_key=os.getenv("TAVUS_API_KEY") or None,
            tavus_persona_id=os.getenv("TAVUS_PERSONA_ID", cls.tavus_persona_id),
            tavus_callback_url=os.getenv("TAVUS_CALLBACK_URL") or None,
            s3_bucket_name=os.getenv("S3_BUCKET_NAME") or None,
            aws_region=os.getenv("AWS_REGION", cls.aws_region),
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID") or None,
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY") or None,
            s3_endpoint_url=os.getenv("S3_ENDPOINT_URL") or None,
            redis_url=os.getenv("REDIS_URL", cls.redis_url),
            cache_enabled=_env_flag("CACHE_ENABLED", "true"),
            frontend_url=os.getenv("FRONTEND_URL", cls.frontend_url),
            operator_api_key=os.getenv("OPERATOR_API_KEY") or None,
        )

        # Report which integrations will run in mock mode
        for name, value in (
            ("GEMINI_API_KEY", settings.gemini_api_key),
            ("ELEVENLABS_API_KEY", settings.elevenlabs_api_key),
            ("TAVUS_API_KEY", settings.tavus_api_key),
            ("S3_BUCKET_NAME", settings.s3_bucket_name),
        ):
            if not value:
                logger.warning(f"{name} not configured. Related features will run in fallback mode.")

        return settings
