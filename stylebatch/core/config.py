from typing import List, Union
from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "StyleBatch API"

    # CORS
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # Logging
    LOG_LEVEL: str = "INFO"

    # Remote generation service
    API_BASE_URL: str = "http://localhost:3000"
    API_TOKEN: str = ""
    SUBMIT_PATH: str = "/api/scene/generate"
    JOB_STATUS_PATH: str = "/api/jobs/{job_id}"
    USER_AGENT: str = "StyleBatch/1.0"

    # Timeouts and polling
    REQUEST_TIMEOUT_SECONDS: float = 45.0
    POLL_INTERVAL_SECONDS: float = 3.0
    POLL_TIMEOUT_SECONDS: float = 300.0  # 5 minutes
    POLL_REQUEST_MAX_RETRIES: int = 3

    # Generation parameters
    MAX_UPLOAD_IMAGE_MB: int = 12
    DEFAULT_STYLE_TYPE: str = "AUTO"  # AUTO, REALISTIC, FICTION
    GENERATION_MODEL_TAG: str = "ideogram-remix"
    AUTO_START_ON_UPLOAD: bool = False

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_IMAGE_MB * 1024 * 1024


settings = Settings()
