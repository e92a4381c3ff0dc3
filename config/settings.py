"""
Configuration management using pydantic-settings.

Hierarchical configuration with environment variable support.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class KafkaSettings(BaseSettings):
    """Kafka connection and topic settings."""

    model_config = SettingsConfigDict(env_prefix="KAFKA_")

    bootstrap_servers: str = Field(default="localhost:9092")
    consumer_group: str = Field(default="stream-processor")
    client_id: str = Field(default="stream-processor")
    input_topic: str = Field(default="ecommerce-events")
    fraud_alerts_topic: str = Field(default="fraud-alerts")
    processed_purchases_topic: str = Field(default="processed-purchases")
    recommendations_topic: str = Field(default="recommendations")
    auto_offset_reset: Literal["earliest", "latest"] = Field(default="latest")
    enable_auto_commit: bool = Field(default=True)
    auto_commit_interval_ms: int = Field(default=5000, ge=100)

    @property
    def output_topics(self) -> list[str]:
        return [
            self.fraud_alerts_topic,
            self.processed_purchases_topic,
            self.recommendations_topic,
        ]


class ProcessorSettings(BaseSettings):
    """Stream processing and classification settings."""

    model_config = SettingsConfigDict(env_prefix="PROCESSOR_")

    poll_timeout_seconds: float = Field(default=1.0, gt=0.0, le=60.0)
    max_poll_records: int = Field(default=100, ge=1)

    # Classification
    fraud_threshold: float = Field(default=400.0, ge=0.0, description="Purchase value above which an alert fires")
    discount_probability: float = Field(default=0.5, ge=0.0, le=1.0)
    recommendation_probability: float = Field(default=0.3, ge=0.0, le=1.0)
    recommended_products: list[str] = Field(default_factory=lambda: ["product_X", "product_Y"])
    purchase_category: str = Field(default="electronics")

    # Reporting
    report_interval_seconds: float = Field(default=30.0, gt=0.0)
    # Also report after every N processed events (0 disables)
    report_every_events: int = Field(default=10, ge=0)
    top_users: int = Field(default=3, ge=1)

    # Fixed seed for reproducible runs (tests only)
    random_seed: int | None = Field(default=None)


class AppSettings(BaseSettings):
    """Application-level settings."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: Literal["development", "staging", "production"] = Field(default="development")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="console")

    # Nested settings
    kafka: KafkaSettings = Field(default_factory=KafkaSettings)
    processor: ProcessorSettings = Field(default_factory=ProcessorSettings)

    @model_validator(mode="after")
    def validate_topics(self) -> "AppSettings":
        if self.kafka.input_topic in self.kafka.output_topics:
            raise ValueError("input topic must not be one of the derived output topics")
        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"


@lru_cache
def get_settings() -> AppSettings:
    """Get cached application settings."""
    return AppSettings()
