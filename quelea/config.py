from functools import lru_cache
from typing import Literal, Optional
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class QueueSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="QUELEA_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    transport: Literal["sqs", "memory"] = "sqs"
    queue_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("QUELEA_QUEUE_URL", "AWS_QUEUE_URL")
    )
    dead_letter_queue_url: Optional[str] = None
    region: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("QUELEA_REGION", "AWS_REGION")
    )
    endpoint_url: Optional[str] = None
    aws_access_key_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("QUELEA_AWS_ACCESS_KEY_ID", "AWS_ACCESS_KEY_ID"),
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("QUELEA_AWS_SECRET_ACCESS_KEY", "AWS_SECRET_ACCESS_KEY"),
    )

    max_batch: int = Field(default=10, ge=1, le=10)
    wait_seconds: int = Field(default=20, ge=0, le=20)
    lease_seconds: int = Field(default=30, ge=0, le=43_200)
    concurrency: int = Field(default=10, ge=1)
    max_receive_count: int = Field(default=5, ge=1)
    release_failed: bool = False
    log_level: str = "INFO"

    def client_kwargs(self) -> dict:
        kwargs = {}
        if self.region:
            kwargs["region_name"] = self.region
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        if self.aws_access_key_id and self.aws_secret_access_key:
            kwargs["aws_access_key_id"] = self.aws_access_key_id
            kwargs["aws_secret_access_key"] = self.aws_secret_access_key
        return kwargs


@lru_cache()
def get_settings() -> QueueSettings:
    return QueueSettings()
