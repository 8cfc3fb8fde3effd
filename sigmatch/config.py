from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Model
    MODEL_PATH: str = "models/signature_feature_extractor.onnx"
    MODEL_URL: Optional[str] = None
    IMG_SIZE: int = 128

    # Matching
    MATCH_THRESHOLD: float = 0.425  # calibrated for 85.1% validation accuracy
    MAX_DISTANCE: float = 2.0

    # Gallery
    ANCHOR_DIR: str = "anchors"
    GALLERY_PATH: str = "anchors/anchors.json"

    # Embedding
    EMBEDDING_CACHE_SIZE: int = 128
    EMBEDDING_TIMEOUT: float = 30.0
    MAX_WORKERS: int = 4
    IMAGE_FETCH_TIMEOUT: float = 10.0

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3002
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    class Config:
        env_file = ".env"
        extra = "ignore"
        case_sensitive = True


# Global settings instance
settings = Settings()
