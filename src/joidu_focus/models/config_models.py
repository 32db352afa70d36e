"""Pydantic models for Joidu Focus configuration."""

from pydantic import BaseModel, Field, field_validator


class FocusConfig(BaseModel):
    """Focus session defaults."""

    default_duration: int = Field(default=25, description="Session length (minutes)")
    break_duration: int = Field(default=5, description="Recovery break (minutes)")
    preparation_countdown: int = Field(
        default=5, description="Seconds of countdown before a session starts"
    )
    auto_break: bool = Field(default=False)
    end_sound: bool = Field(default=True)
    block_distractions: bool = Field(default=False)

    @field_validator("default_duration", "break_duration")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("duration must be a positive number of minutes")
        return v

    @field_validator("preparation_countdown")
    @classmethod
    def validate_countdown(cls, v: int) -> int:
        if v < 0:
            raise ValueError("countdown cannot be negative")
        return v


class StorageConfig(BaseModel):
    """Where session state lives."""

    path: str | None = Field(
        default=None, description="Override for the key-value state file"
    )
    history_limit: int | None = Field(
        default=None, description="Keep only the newest N history entries"
    )

    @field_validator("history_limit")
    @classmethod
    def validate_history_limit(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ValueError("history_limit must be at least 1 (or null for no limit)")
        return v


class OutputConfig(BaseModel):
    """Output configuration."""

    color: bool = Field(default=True)
    refresh_per_second: int = Field(default=4)


class AppConfig(BaseModel):
    """Main Joidu Focus configuration"""

    focus: FocusConfig = Field(default_factory=FocusConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
