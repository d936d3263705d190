from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="SUMPMON_", extra="ignore")

    app_name: str = "DrMemory Sump Monitor"
    timezone: str = "America/Chicago"

    # Sump pump process
    sensor_host: str = "192.168.1.101"
    sensor_port: int = 10_000
    retry_delay_seconds: float = 10.0

    # Storage: "redis" or "sqlite"
    storage_backend: str = Field(default="redis")
    stream_namespace: str = "sump"
    redis_host: str = "127.0.0.1"
    redis_port: int = 6379
    redis_db: int = 0
    sqlite_path: str = Field(default="sump.db")

    # Lights: "sim" for development, "hue" for the bridge
    light_driver: str = Field(default="sim")
    hue_bridge_host: str = "192.168.1.2"
    hue_username: str = ""
    hue_timeout: float = 5.0
    light_ids: list[int] = [5, 8]
    light_drain_seconds: float = 6.0

    # Logging
    log_level: str = "WARNING"
    log_file: str = "sumpmon.log"


settings = Settings()
