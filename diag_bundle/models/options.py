"""Run options for a collection pass."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class CollectionOptions(BaseModel):
    """Switches that gate optional tasks and control console output."""

    include_merged_update_log: bool = Field(
        True, description="Generate the merged Windows Update log (slow)"
    )
    include_optional_diagnostic_bundle: bool = Field(
        True, description="Run the optional third-party diagnostic bundle tool"
    )
    verbose_console: bool = Field(
        True, description="Mirror audit entries to the console"
    )
    command_timeout: Optional[float] = Field(
        None,
        description="Seconds before an external command is abandoned (None waits forever)",
    )

    model_config = {"frozen": True}

    @field_validator("command_timeout")
    @classmethod
    def timeout_must_be_positive(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("command_timeout must be positive")
        return v
