import os
import tempfile
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Secure Code Runner"
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    # Host directory holding one staged workspace per execution
    SANDBOX_ROOT: str = os.path.join(tempfile.gettempdir(), "code-sandbox")
    MOUNT_PATH: str = "/sandbox"

    # Sandbox limits
    MEMORY_LIMIT: str = "256m"
    RUN_TIME_LIMIT_S: int = 10
    STREAM_TIMEOUT_S: float = 5.0
    MAX_OUTPUT_BYTES: int = 1024 * 1024
    TEST_CONCURRENCY: int = 1

    # Languages
    DEFAULT_LANGUAGE: str = "python"
    PYTHON_IMAGE: str = "python:3.11-slim"
    JAVASCRIPT_IMAGE: str = "node:18-slim"
    JAVA_IMAGE: str = "eclipse-temurin:17-jdk"
    CPP_IMAGE: str = "gcc:latest"

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
