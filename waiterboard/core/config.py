"""Application configuration."""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Restaurant backend
    api_base_url: str = "http://localhost:5000"
    api_token: Optional[str] = None
    request_timeout_seconds: float = 30.0

    # Acting employee
    employee_id: Optional[int] = None
    employee_name: str = ""
    employee_role: str = "waiter"

    # Polling
    poll_interval_seconds: float = 2.0
    poll_initial_delay_seconds: float = 2.0
    pending_calls_interval_seconds: float = 30.0
    paid_sessions_interval_seconds: float = 30.0

    # Refresh delays after a poll diff or a push event
    poll_new_order_refresh_delay: float = 0.2
    poll_drift_refresh_delay: float = 0.15
    push_new_order_refresh_delay: float = 0.2
    push_order_status_refresh_delay: float = 0.5
    push_bus_status_refresh_delay: float = 0.35
    push_bus_new_order_refresh_delay: float = 0.5
    push_session_refresh_delay: float = 0.4
    push_auto_accept_refresh_delay: float = 0.5

    # Waiter notes
    note_save_debounce_seconds: float = 0.8
    note_save_timeout_seconds: float = 10.0

    # Row flags
    aged_order_minutes: int = 15
    default_prep_time_minutes: int = 30

    # Client state database
    database_url: str = "sqlite+aiosqlite:///./waiterboard.db"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = Settings()
