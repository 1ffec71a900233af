"""
Configuration of the relay. Values come from the environment or a .env file.
"""

from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()  # pick up .env before settings are read


class Settings(BaseSettings):
    """
    Settings of the relay. Every key can be overridden from ENV or .env.
    """
    HOST: str = Field(default="0.0.0.0", description="Interface to listen on")
    PORT: int = Field(default=3737, description="Single port for HTTP and WebSocket")
    LOG_LEVEL: str = Field(default="INFO", description="Root logging level")
    MAX_REQUEST_BYTES: int = Field(default=64 * 1024, description="Upper bound for an HTTP request head")
    MAX_MESSAGE_BYTES: int = Field(default=1024 * 1024, description="Largest accepted frame payload")
    SEND_TIMEOUT: float = Field(default=5.0, description="Seconds a peer may take to accept a broadcast")
    HISTORY_FILE: str = Field(default="~/.clipsync/history.json", description="Where received text is kept")
    HISTORY_LIMIT: int = Field(default=20, description="How many items the history keeps")
    WEB_ROOT: Optional[str] = Field(default=None, description="Directory overriding the bundled web client")
    DIAG_LOG: str = Field(default="clipsync_diag.log", description="Rotating log of received messages")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
