from pydantic_settings import BaseSettings
from pydantic import Field

class Settings(BaseSettings):
    app_name: str = Field(default="RoomHub")
    app_env: str = Field(default="development")
    app_debug: bool = Field(default=True)
    log_level: str = Field(default="INFO")

    jwt_secret: str = Field(default="change_me_in_prod")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60 * 24)

    database_url: str = Field(default="sqlite:///./roomhub.db")

    # Room passwords
    bcrypt_rounds: int = Field(default=12)

    # Rooms
    room_code_length: int = Field(default=8)
    room_code_attempts: int = Field(default=5)
    default_max_participants: int = Field(default=50)
    max_page_size: int = Field(default=100)
    invite_ttl_minutes: int = Field(default=60 * 24 * 7)

    cors_origins: list[str] = Field(default=["*"])

    class Config:
        env_file = ".env"
        case_sensitive = False

settings = Settings()
