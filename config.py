# config.py - Configuration management for Portal Lead Bridge

import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name, "")
    try:
        return int(value) if value.strip() else default
    except ValueError:
        return default


class AppConfig:
    """
    Centralized configuration management for the application
    """

    # CRM inbound webhook (token is embedded in the URL path)
    CRM_WEBHOOK_URL: str = os.getenv("CRM_WEBHOOK_URL", "")
    CRM_TIMEOUT_SECONDS: int = _int_env("CRM_TIMEOUT_SECONDS", 15)
    CRM_DEFAULT_RESPONSIBLE_ID: int = _int_env("CRM_DEFAULT_RESPONSIBLE_ID", 1)
    CRM_ACTIVITY_TYPE_ID: int = _int_env("CRM_ACTIVITY_TYPE_ID", 4)

    # Lead source ids, by portal
    CRM_SOURCE_WIMOVEIS: str = os.getenv("CRM_SOURCE_WIMOVEIS", "WIMOVEIS")
    CRM_SOURCE_IMOVELWEB: str = os.getenv("CRM_SOURCE_IMOVELWEB", "IMOVELWEB")
    CRM_SOURCE_FALLBACK: str = os.getenv("CRM_SOURCE_FALLBACK", "WEB")

    # Security Configuration
    WEBHOOK_SECRET: str = os.getenv("WEBHOOK_SECRET", "")

    # Server Configuration
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = _int_env("PORT", 8000)
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @classmethod
    def validate_config(cls) -> bool:
        """
        Validate that required configuration is present
        """
        required_fields = [
            "CRM_WEBHOOK_URL",
        ]

        missing_fields = [field for field in required_fields if not getattr(cls, field)]

        if missing_fields:
            print(f"❌ Missing required configuration: {', '.join(missing_fields)}")
            return False

        return True


@dataclass(frozen=True)
class BridgeSettings:
    """Explicit settings handed to the gateway, intake service and auth check."""

    crm_webhook_url: str = ""
    webhook_secret: str = ""
    timeout_seconds: float = 15
    default_responsible_id: int = 1
    activity_type_id: int = 4
    source_wimoveis: str = "WIMOVEIS"
    source_imovelweb: str = "IMOVELWEB"
    source_fallback: str = "WEB"

    @classmethod
    def from_app_config(cls, config: Optional[type] = None) -> "BridgeSettings":
        config = config or AppConfig
        return cls(
            crm_webhook_url=config.CRM_WEBHOOK_URL,
            webhook_secret=config.WEBHOOK_SECRET,
            timeout_seconds=config.CRM_TIMEOUT_SECONDS,
            default_responsible_id=config.CRM_DEFAULT_RESPONSIBLE_ID,
            activity_type_id=config.CRM_ACTIVITY_TYPE_ID,
            source_wimoveis=config.CRM_SOURCE_WIMOVEIS,
            source_imovelweb=config.CRM_SOURCE_IMOVELWEB,
            source_fallback=config.CRM_SOURCE_FALLBACK,
        )


def get_settings() -> BridgeSettings:
    """FastAPI dependency; tests override it through app.dependency_overrides."""
    return BridgeSettings.from_app_config()
