# Standard library imports
import os
from typing import Final, List, Optional


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings:
    """
    Application settings loaded from environment variables.
    
    This class centralizes all configuration settings for the application.
    All settings are loaded from environment variables with sensible defaults.
    """
    
    def __init__(self) -> None:
        # Model Storage Configuration
        self.model_storage_url: Final[str] = os.getenv(
            "MODEL_STORAGE_URL",
            "https://models.signademy.app"
        ).rstrip("/")
        self.model_bucket: Final[str] = os.getenv("MODEL_BUCKET", "models")
        self.model_cache_dir: Final[str] = os.getenv(
            "MODEL_CACHE_DIR",
            os.path.join(os.path.expanduser("~"), ".cache", "signademy-models-v1"),
        )
        self.model_download_timeout: Final[float] = float(
            os.getenv("MODEL_DOWNLOAD_TIMEOUT", "120")
        )
        
        # Recognizer Runtime Configuration
        # Each entry is "<module>[:<attribute path>]|<asset base>". An empty asset
        # base resolves to the directory of the module the endpoint loads.
        self.runtime_endpoints: Final[List[str]] = _split_csv(
            os.getenv(
                "RUNTIME_ENDPOINTS",
                "mediapipe.tasks.python.vision|,"
                "mediapipe.tasks.python.vision.gesture_recognizer|,"
                "mediapipe:tasks.vision|",
            )
        )
        self.runtime_max_retries: Final[int] = int(os.getenv("RUNTIME_MAX_RETRIES", "2"))
        self.runtime_initial_delay: Final[float] = float(os.getenv("RUNTIME_INITIAL_DELAY", "1.0"))
        self.runtime_max_delay: Final[float] = float(os.getenv("RUNTIME_MAX_DELAY", "4.0"))
        self.runtime_delegate: Final[str] = os.getenv("RUNTIME_DELEGATE", "CPU").upper()
        
        # Recognition Configuration
        self.recognition_display_threshold: Final[float] = float(
            os.getenv("RECOGNITION_DISPLAY_THRESHOLD", "50")
        )
        self.recognition_scoring_threshold: Final[float] = float(
            os.getenv("RECOGNITION_SCORING_THRESHOLD", "60")
        )
        self.recognition_grace_ms: Final[int] = int(os.getenv("RECOGNITION_GRACE_MS", "500"))
        self.recognition_fps: Final[float] = float(os.getenv("RECOGNITION_FPS", "30"))
        
        # Camera Configuration
        self.camera_index: Final[int] = int(os.getenv("CAMERA_INDEX", "0"))
        self.camera_width: Final[int] = int(os.getenv("CAMERA_WIDTH", "640"))
        self.camera_height: Final[int] = int(os.getenv("CAMERA_HEIGHT", "480"))
        self.camera_first_frame_timeout: Final[float] = float(
            os.getenv("CAMERA_FIRST_FRAME_TIMEOUT", "5.0")
        )
        
        # API Configuration
        self.cors_origins: Final[List[str]] = _split_csv(os.getenv("CORS_ORIGINS", "*"))


# Global settings instance (singleton pattern)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings (singleton pattern)
    
    Returns:
        Settings instance with all configuration values
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
