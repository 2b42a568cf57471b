from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    """Centralized application settings.

    Environment-variable handling lives here so the rest of the service can
    depend on typed attributes instead of calling os.getenv directly.
    """

    # Twilio messaging channel. The account SID must start with "AC"; the
    # sender is the WhatsApp-enabled number (with or without "whatsapp:").
    twilio_account_sid: Optional[str] = os.getenv("TWILIO_ACCOUNT_SID")
    twilio_auth_token: Optional[str] = os.getenv("TWILIO_AUTH_TOKEN")
    twilio_whatsapp_number: Optional[str] = os.getenv("TWILIO_WHATSAPP_NUMBER")

    # When enabled, inbound webhooks must carry a valid X-Twilio-Signature
    # computed over PUBLIC_WEBHOOK_URL (the URL Twilio is configured to call).
    twilio_validate_signature: bool = os.getenv("TWILIO_VALIDATE_SIGNATURE", "false").lower() == "true"
    public_webhook_url: Optional[str] = os.getenv("PUBLIC_WEBHOOK_URL")

    # Drafting backend selection: "demo" (default) or "openai".
    drafting_backend: str = os.getenv("DRAFTING_BACKEND", "demo")
    openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o")
    llm_timeout_seconds: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))
    llm_max_tokens: int = int(os.getenv("LLM_MAX_TOKENS", "500"))

    # Conversation context window used when drafting answers.
    history_window_hours: int = int(os.getenv("HISTORY_WINDOW_HOURS", "24"))

    # Database configuration for SQL-backed repositories. Without
    # USE_SQL_REPOS the in-memory repositories are used.
    database_url: Optional[str] = os.getenv("DATABASE_URL")
    use_sql_repos: bool = os.getenv("USE_SQL_REPOS", "false").lower() == "true"

    # Dashboard API authentication. When ENABLE_API_AUTH=true the identity
    # gateway in front of the service must present one of API_KEYS.
    enable_api_auth: bool = os.getenv("ENABLE_API_AUTH", "false").lower() == "true"
    api_keys: Optional[str] = os.getenv("API_KEYS")

    # CORS configuration: comma-separated origins. "*" is fine for local
    # development but should be tightened in production.
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")


settings = Settings()
