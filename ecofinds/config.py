from pydantic_settings import BaseSettings
from pydantic import ConfigDict, field_validator


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./ecofinds.db"

    # JWT
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # Cloudinary
    CLOUDINARY_CLOUD_NAME: str
    CLOUDINARY_API_KEY: str
    CLOUDINARY_API_SECRET: str
    CLOUDINARY_FOLDER: str = "ecofinds"

    # Uploads
    PLACEHOLDER_IMAGE_URL: str = "/uploads/placeholder-product.jpg"
    DEFAULT_AVATAR_URL: str = "/uploads/default-avatar.png"
    MAX_PRODUCT_IMAGES: int = 12
    MAX_IMAGE_SIZE_MB: int = 5
    MAX_AVATAR_SIZE_MB: int = 2

    # Marketplace
    SERVICE_FEE: float = 50.0

    # Seeding
    ADMIN_NAME: str = "Admin User"
    ADMIN_EMAIL: str = "admin@ecofinds.com"
    ADMIN_PASSWORD: str = "admin123"

    DEBUG: bool = False
    TESTING: bool = False
    LOG_LEVEL: str = "INFO"

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        """Accept log levels in any case ("debug", "Info", ...)."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    model_config = ConfigDict(env_file=".env", extra="ignore")


settings = Settings()
