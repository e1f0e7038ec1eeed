"""
Pydantic Schema Definitions
============================
Defines the structured shapes exchanged with the model and the caller.

DetectionVerdict: The model's final answer. Extra fields are forbidden so
                  the derived JSON Schema is strict.
CheckUrlArguments: Arguments of the checkUrl tool. Extra fields are
                  ignored; only "url" is needed.
DetectionReport:  The verdict plus every URL checked during the run.
                  Read-only once assembled (tuple items, mapping proxy).
ErrorResponse:    Body returned by the service when a run fails.

Field names are camelCase because they are serialized as-is on the wire.
"""

from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class DetectedItem(BaseModel):
    """A single suspicious element the model found in the email."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    title: str = Field(description="Short description of the item")
    description: str = Field(description="Longer technical description of the item")
    reasoning: str = Field(description="Why the item was found suspicious")


class DetectionVerdict(BaseModel):
    """Structured phishing verdict produced by the model."""
    model_config = ConfigDict(extra="forbid")

    suspicious: bool = Field(description="Whether the email may be a phishing attempt")
    shortDescription: str = Field(
        description="One non-technical sentence explaining the verdict, quoting the email"
    )
    detectedItems: List[DetectedItem] = Field(
        description="Every suspicious item found in the email"
    )


class CheckUrlArguments(BaseModel):
    """Arguments of the checkUrl tool."""
    url: str = Field(description="The URL to check, exactly as it appears in the email")


class DetectionReport(BaseModel):
    """Verdict plus URL check results, returned to the caller."""
    model_config = ConfigDict(frozen=True)

    suspicious: bool
    shortDescription: str
    detectedItems: Tuple[DetectedItem, ...]
    urlChecks: Mapping[str, str] = Field(description="URL to scanner verdict, in first-seen order")

    @field_validator("urlChecks", mode="after")
    @classmethod
    def _read_only_url_checks(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(value))

    @field_serializer("urlChecks")
    def _serialize_url_checks(self, value: Mapping[str, str]) -> Dict[str, str]:
        return dict(value)


class ErrorResponse(BaseModel):
    """Diagnostic body for a failed detection run."""
    error: str = Field(description="Machine-readable error code")
    detail: str = Field(description="Human-readable error message")
