"""Application configuration."""
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./callbridge.db"

    # Cron trigger shared secret (sent as x-vercel-cron-secret)
    cron_secret: Optional[str] = None

    # PlanetKit
    planetkit_agent_call_base_url: str = "https://vpnx-stn-api.line-apps-rc.com"
    planetkit_api_key: Optional[str] = None
    planetkit_api_secret: Optional[str] = None
    planetkit_service_id: Optional[str] = None
    planetkit_agent_call_mock_mode: bool = False

    # LiveKit
    livekit_url: Optional[str] = None
    livekit_api_key: Optional[str] = None
    livekit_api_secret: Optional[str] = None

    # LINE
    line_channel_id: Optional[str] = None
    line_channel_secret: Optional[str] = None
    line_token_url: str = "https://api.line.me/oauth2/v2.1/token"
    line_push_url: str = "https://api.line.me/v2/bot/message/push"
    liff_id: Optional[str] = None
    admin_uids: str = ""

    # Web push (VAPID)
    vapid_public_key: Optional[str] = None
    vapid_private_key: Optional[str] = None
    vapid_subject: str = "mailto:noreply@example.com"

    # AI voice agents
    openai_api_key: Optional[str] = None
    openai_realtime_model: str = "gpt-4o-realtime-preview-2024-12-17"
    openai_realtime_voice: str = "alloy"
    gemini_api_key: Optional[str] = None
    gemini_live_model: str = "models/gemini-2.5-flash-native-audio-latest"

    # Headless agent launcher
    agent_launcher_url: Optional[str] = None

    # Call lifecycle timing
    call_timeout_seconds: int = 60
    timeout_buffer_seconds: int = 5
    retry_delay_seconds: int = Field(default=300, gt=0)
    max_retry_attempts: int = 3
    room_lock_ttl_ms: int = 30_000

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def admin_uid_list(self) -> List[str]:
        """Admin LINE user ids parsed from the comma separated setting."""
        return [uid.strip() for uid in self.admin_uids.split(",") if uid.strip()]

    @property
    def stale_call_threshold_seconds(self) -> int:
        """Age after which a ringing/initiated call counts as timed out."""
        return self.call_timeout_seconds + self.timeout_buffer_seconds


settings = Settings()
