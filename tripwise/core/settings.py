import os

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings(BaseModel):
    google_maps_api_key: str = os.getenv("GOOGLE_MAPS_API_KEY", "")
    distance_matrix_timeout: float = float(os.getenv("DISTANCE_MATRIX_TIMEOUT", "10"))
    aisuite_model: str = os.getenv("AISUITE_MODEL", "openai:gpt-4o-mini")
    use_llm_narrative: bool = _env_flag("USE_LLM_NARRATIVE")
    allowed_origins: str = os.getenv("ALLOWED_ORIGINS", "")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def get_settings() -> Settings:
    return Settings()
