"""Structured error results returned instead of raising."""

from pydantic import BaseModel, ConfigDict, Field


class LoadError(BaseModel):
    """A load step that could not produce data (missing or unreadable input)."""

    model_config = ConfigDict(frozen=True)

    error: str = Field(description="Human-readable reason")


class SubFileError(BaseModel):
    """A session sub-file that failed to decode."""

    model_config = ConfigDict(frozen=True)

    error: str = Field(description="Decode error message")
