# labdesk/core/config.py

from typing import Optional
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
import os

# 프로젝트의 루트 디렉토리 경로를 계산합니다.
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class Settings(BaseSettings):
    """
    애플리케이션의 모든 설정을 정의하는 Pydantic BaseSettings 모델입니다.
    환경 변수 및 .env 파일에서 값을 자동으로 로드합니다.
    """

    # --- Pydantic Settings 설정 ---
    model_config = SettingsConfigDict(
        env_file=os.path.join(BASE_DIR, '.env'),  # 프로젝트 루트의 .env 파일
        env_file_encoding='utf-8',
        extra='ignore',                      # 모델에 없는 변수는 무시
        case_sensitive=True
    )

    # --- 애플리케이션 기본 설정 ---
    APP_NAME: str = "LabDesk LIMS API"
    APP_VERSION: str = "0.1.0"
    APP_ENV: str = Field("development", description="Application environment (e.g., development, production, testing)")
    DEBUG_MODE: bool = Field(False, description="Enable debug mode for detailed logging and SQL echo")

    # --- 데이터베이스 설정 ---
    DATABASE_URL: SecretStr = Field(..., description="Async database connection URL (postgresql+asyncpg://...)")

    # --- JWT 설정 ---
    SECRET_KEY: SecretStr = Field(..., description="Secret key for JWT token signing.")
    ALGORITHM: str = Field("HS256", description="Algorithm used for JWT signing")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(30, description="Access token expiration time in minutes")

    # --- ARQ (Redis) 설정 ---
    REDIS_HOST: str = Field("localhost", description="Redis host for the ARQ worker")
    REDIS_PORT: int = Field(6379, description="Redis port for the ARQ worker")

    # --- 서버리스 함수 (AI 텍스트 생성) 설정 ---
    FUNCTIONS_BASE_URL: str = Field("http://localhost:54321/functions/v1", description="Base URL of the hosted serverless functions")
    FUNCTIONS_API_KEY: Optional[SecretStr] = Field(None, description="Bearer key sent with function invocations")
    FUNCTIONS_TIMEOUT: float = Field(30.0, description="Function invocation timeout in seconds")

    # --- 수납 표시 설정 ---
    CURRENCY_CODE: str = Field("INR", description="Currency used when formatting amounts")
    CURRENCY_LOCALE: str = Field("en-IN", description="Locale used when formatting amounts")


settings = Settings()
