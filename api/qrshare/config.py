from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    environment: str = "development"
    # Stored as comma-separated strings to avoid pydantic-settings
    # complex type parsing (json.loads) which fails on plain CSV values.
    cors_origins: str = "http://localhost:3000"
    # Base for session URLs when the create request does not supply one.
    public_base_url: str = ""

    keepalive_seconds: float = 15
    sweep_interval_seconds: float = 30 * 60
    session_max_age_seconds: float = 60 * 60
    # Room for the connected event plus the snapshot.
    subscriber_queue_maxsize: int = Field(64, ge=2)
    session_id_length: int = Field(10, ge=10)
    qr_code_size: int = 300

    def get_cors_origins(self) -> list[str]:
        return [s.strip() for s in self.cors_origins.split(",") if s.strip()]

    def validate_production(self) -> None:
        if self.environment == "production":
            for origin in self.get_cors_origins():
                if "localhost" in origin or "127.0.0.1" in origin:
                    raise ValueError(
                        f"CORS origin '{origin}' contains localhost. "
                        "Remove localhost origins in production."
                    )
            if self.public_base_url and not self.public_base_url.startswith(
                "https://"
            ):
                raise ValueError("PUBLIC_BASE_URL must use https in production.")


settings = Settings()
