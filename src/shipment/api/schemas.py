"""API schemas — the manual and RFC 7807 error bodies."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ActionInfo(BaseModel):
    """One entry of the manual."""

    description: str = Field(default="", description="What the action does")


class AppManual(BaseModel):
    """Available actions keyed by name."""

    actions: dict[str, ActionInfo] = Field(default_factory=dict)


class ManualResponse(BaseModel):
    """Body of the index route."""

    app: AppManual


class ProblemDetail(BaseModel):
    """RFC 7807 «Problem Details for HTTP APIs»."""

    type: str = Field(default="about:blank", description="Problem type URI")
    title: str = Field(description="Short summary of the problem")
    status: int = Field(description="HTTP status code")
    detail: str = Field(default="", description="Explanation specific to this occurrence")
    instance: str = Field(default="", description="URI of the request")
