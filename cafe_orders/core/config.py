"""
Application Configuration Module

Centralizes all configuration using environment variables with Pydantic Settings.
Supports two kinds of store backends:
    - DEVELOPMENT: Orders, zones and coupons live in a local Excel workbook
    - PRODUCTION/STAGING: Everything goes through the spreadsheet script
      behind the action gateway

Usage:
    from cafe_orders.core.config import get_settings

    settings = get_settings()
    if settings.is_development:
        # Local workbook store
    else:
        # Remote spreadsheet gateway

Version: 1.0.0
"""

import logging
import sys
from enum import Enum
from typing import Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentMode(str, Enum):
    """
    Application environment modes.

    Attributes:
        DEVELOPMENT: Local testing against the workbook store
        PRODUCTION: Live spreadsheet behind the action gateway
        STAGING: Pre-production spreadsheet copy
    """
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    STAGING = "staging"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    The spreadsheet API key should NEVER be committed to version control.

    Attributes:
        env_mode: Current environment (development/production/staging)
        debug: Enable verbose logging and error details

        # Gateway
        gateway_base_url: Base URL of the `/api?action=` gateway
        sheet_script_url: Spreadsheet script the gateway forwards to
        sheet_api_key: Key appended to every forwarded call

        # Store
        store_name: Display name used in customer messages
        store_whatsapp: Number that receives order summaries
        min_delivery_order: Minimum subtotal for delivery (0 disables)

        # Kitchen
        kitchen_poll_interval_seconds: Order list refresh interval
        kitchen_alert_seconds: How long a new-order alert stays up
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # ENVIRONMENT
    # ==========================================================================

    env_mode: EnvironmentMode = Field(
        default=EnvironmentMode.DEVELOPMENT,
        description="Application environment mode"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging"
    )

    # ==========================================================================
    # APPLICATION
    # ==========================================================================

    app_name: str = Field(
        default="Café Ordering Gateway",
        description="Application display name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host"
    )
    api_port: int = Field(
        default=8001,
        description="API server port"
    )

    # ==========================================================================
    # ACTION GATEWAY
    # ==========================================================================

    gateway_base_url: str = Field(
        default="http://localhost:8001",
        description="Base URL of the /api?action= gateway"
    )
    gateway_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for a single gateway request"
    )

    # ==========================================================================
    # SPREADSHEET SCRIPT
    # ==========================================================================

    sheet_script_url: Optional[str] = Field(
        default=None,
        description="Spreadsheet script URL the gateway forwards to"
    )
    sheet_api_key: Optional[str] = Field(
        default=None,
        description="Key appended to forwarded spreadsheet calls"
    )

    # ==========================================================================
    # STORE CONFIGURATION
    # ==========================================================================

    store_name: str = Field(
        default="Roast Coffee",
        description="Store display name"
    )
    store_whatsapp: str = Field(
        default="11999999999",
        description="Messaging number that receives order summaries"
    )
    country_code: str = Field(
        default="55",
        description="Country calling code used for MSISDN normalization"
    )
    messaging_host: str = Field(
        default="wa.me",
        description="Host of the messaging deep link"
    )
    fallback_timeout_seconds: float = Field(
        default=30.0,
        description="Seconds before the manual messaging button auto-dismisses"
    )
    min_delivery_order: float = Field(
        default=0.0,
        ge=0,
        description="Minimum subtotal for delivery orders (0 disables)"
    )

    # ==========================================================================
    # FILE STORAGE
    # ==========================================================================

    data_directory: str = Field(
        default="data",
        description="Directory for data files"
    )
    workbook_filename: str = Field(
        default="store.xlsx",
        description="Workbook used by the development store"
    )
    file_lock_timeout: int = Field(
        default=30,
        description="Seconds to wait for a file lock"
    )
    cart_storage_key: str = Field(
        default="carrinho",
        description="Storage key of the persisted cart snapshot"
    )

    # ==========================================================================
    # KITCHEN FEED
    # ==========================================================================

    kitchen_poll_interval_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Seconds between order list refreshes"
    )
    kitchen_alert_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Seconds a new-order alert stays active"
    )
    kitchen_alert_on_first_poll: bool = Field(
        default=False,
        description="Alert for the newest order found by the very first poll"
    )

    # ==========================================================================
    # VALIDATORS
    # ==========================================================================

    @field_validator("env_mode", mode="before")
    @classmethod
    def validate_env_mode(cls, v: str) -> EnvironmentMode:
        """Convert string to EnvironmentMode enum."""
        if isinstance(v, EnvironmentMode):
            return v
        try:
            return EnvironmentMode(v.lower())
        except ValueError:
            valid = [e.value for e in EnvironmentMode]
            raise ValueError(f"Invalid env_mode. Must be one of: {valid}")

    @field_validator("gateway_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.env_mode == EnvironmentMode.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env_mode == EnvironmentMode.PRODUCTION

    @property
    def use_remote_store(self) -> bool:
        """Check if the spreadsheet script should be used."""
        return self.env_mode in (EnvironmentMode.PRODUCTION, EnvironmentMode.STAGING)

    # ==========================================================================
    # VALIDATION METHODS
    # ==========================================================================

    def validate_production_config(self) -> list[str]:
        """
        Validate that all required production settings are configured.

        Returns:
            List of missing configuration keys (empty if all present)
        """
        missing = []

        if self.use_remote_store:
            if not self.sheet_script_url:
                missing.append("SHEET_SCRIPT_URL")
            if not self.sheet_api_key:
                missing.append("SHEET_API_KEY")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are loaded only once and stay
    consistent across the application lifecycle.

    Returns:
        Settings: Configured application settings
    """
    return Settings()


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure application-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured package logger
    """
    settings = get_settings()

    if settings.debug:
        level = logging.DEBUG

    log_format = "%(asctime)s │ %(levelname)-8s │ %(name)-32s │ %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt=date_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("filelock").setLevel(logging.WARNING)

    return logging.getLogger("cafe_orders")
