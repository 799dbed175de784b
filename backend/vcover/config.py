from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

  # An empty key is sent as-is; the remote rejection becomes the observed failure.
  gemini_api_key: str = Field("", alias="GEMINI_API_KEY")

  @field_validator("gemini_api_key", mode="before")
  @classmethod
  def _strip_key(cls, value: Any) -> str:
    return str(value or "").strip()


settings = Settings()
