"""Application configuration via environment variables."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic_settings import BaseSettings

log = logging.getLogger("ivr.config")


class Settings(BaseSettings):
    # LLM
    llm_provider: str = "claude"  # "claude", "ollama" or "none"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-5-haiku-latest"
    ollama_model: str = "qwen2.5:7b"
    ollama_url: str = "http://localhost:11434"
    ai_max_reply_chars: int = 320
    ai_timeout_seconds: float = 8.0
    ai_max_turns: int = 4

    # Twilio
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_phone_number: str = ""
    admin_phone_numbers: str = ""  # comma separated
    send_customer_confirmations: bool = False

    # Storage
    data_dir: str = "./data"
    google_service_account_json: str = ""
    google_sheets_spreadsheet_id: str = ""
    google_sheets_worksheet: str = "Appointments"

    # Business
    business_name: str = "Altair Partners"
    business_description: str = (
        "a creative agency offering branding, web design and marketing "
        "for small businesses"
    )
    business_location: str = "Portland, Oregon"
    business_timezone: str = "America/Los_Angeles"
    business_timezone_label: str = "Pacific Time"
    business_open_hour: int = 10
    business_close_hour: int = 17

    # Reminders
    reminders_enabled: bool = True
    reminder_hour: int = 14
    reminder_interval_seconds: int = 300
    reminder_tolerance_minutes: int = 5

    # TwiML
    voice: str = "alice"
    language: str = "en-US"
    gather_timeout: int = 5
    public_base_url: str = ""

    # Side effects
    notify_timeout_seconds: float = 10.0
    notify_retries: int = 1

    # Admin auth
    admin_api_key: str = ""

    # Server
    host: str = "0.0.0.0"
    port: int = 1337
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def admin_numbers(self) -> list[str]:
        return [n.strip() for n in self.admin_phone_numbers.split(",") if n.strip()]

    @property
    def twilio_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_phone_number)

    @property
    def appointments_path(self) -> Path:
        return Path(self.data_dir) / "appointments.json"

    @property
    def reminders_log_path(self) -> Path:
        return Path(self.data_dir) / "reminders_log.json"

    @property
    def daily_logs_dir(self) -> Path:
        return Path(self.data_dir) / "daily_logs"

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []
        _placeholders = {"sk-ant-...", "AC...", "path/to/service-account.json"}

        if not 0 <= self.business_open_hour < self.business_close_hour <= 24:
            raise ValueError(
                f"BUSINESS_OPEN_HOUR ({self.business_open_hour}) must be before "
                f"BUSINESS_CLOSE_HOUR ({self.business_close_hour})."
            )

        if self.llm_provider == "claude":
            if not self.anthropic_api_key or self.anthropic_api_key in _placeholders:
                warnings.append(
                    "ANTHROPIC_API_KEY is missing or a placeholder. AI answers are "
                    "disabled and callers will be routed to booking instead."
                )
        elif self.llm_provider not in ("ollama", "none"):
            raise ValueError(f"Unknown LLM_PROVIDER: {self.llm_provider!r}")

        if not self.admin_api_key:
            if self.debug:
                warnings.append("ADMIN_API_KEY not set. Reporting APIs are open (DEBUG=true).")
            else:
                warnings.append(
                    "ADMIN_API_KEY not set. Reporting APIs are locked in production."
                )

        if not self.twilio_configured or self.twilio_account_sid in _placeholders:
            warnings.append(
                "Twilio credentials incomplete. Text messages are only logged "
                "and reminder calls cannot be placed."
            )
        elif not self.admin_numbers:
            warnings.append("ADMIN_PHONE_NUMBERS not set. Nobody receives admin alerts.")

        if self.google_sheets_spreadsheet_id and not self.google_service_account_json:
            warnings.append(
                "GOOGLE_SHEETS_SPREADSHEET_ID set without GOOGLE_SERVICE_ACCOUNT_JSON. "
                "Falling back to the local appointments file."
            )

        return warnings


settings = Settings()
