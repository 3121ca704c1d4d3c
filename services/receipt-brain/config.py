"""Environment-based configuration for the receipt brain."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Receipt brain settings, loaded from environment variables."""

    # Server
    PORT: int = 8092

    # Vision model connection (empty = image extraction disabled)
    VISION_SERVICE_URL: str = ""
    VISION_API_KEY: str = ""

    # Vision model timeouts and retry
    VISION_TIMEOUT_SECONDS: int = 60
    VISION_CONNECT_TIMEOUT: int = 10
    VISION_RETRY_ATTEMPTS: int = 2
    VISION_RETRY_DELAY: float = 1.0
    VISION_RETRY_BACKOFF: float = 2.0
    VISION_CALL_TIMEOUT: float = 45.0  # per model call, retries included

    # Sampling
    VISION_TEMPERATURE: float = 0.1
    CLASSIFY_MAX_TOKENS: int = 200
    EXTRACT_MAX_TOKENS: int = 1000

    # Image preparation before inference
    PREPROCESS_IMAGES: bool = True
    MAX_IMAGE_SIDE: int = 2000
    JPEG_QUALITY: int = 85

    # Confidence calibration (empirical, tune without code changes)
    BARE_VALUE_CONFIDENCE: float = 0.7
    CLASSIFIER_FALLBACK_CONFIDENCE: float = 0.5
    CLASSIFIER_ERROR_CONFIDENCE: float = 0.3
    REGEX_MAX_CONFIDENCE: float = 0.75
    REGEX_DATE_CONFIDENCE: float = 0.6
    REGEX_CURRENCY_CONFIDENCE: float = 0.6
    REGEX_PLATE_CONFIDENCE: float = 0.4
    REGEX_ODOMETER_CONFIDENCE: float = 0.5
    REGEX_CATEGORY_CONFIDENCE: float = 0.6
    REGEX_MAINTENANCE_TYPE_CONFIDENCE: float = 0.7
    REGEX_FUEL_CONFIDENCE: float = 0.5

    model_config = {"env_prefix": "", "case_sensitive": True}


settings = Settings()
