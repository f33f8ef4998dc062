"""Caller-supplied context for a materialization run."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class OrganizationRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    identifier: str = Field(min_length=1, max_length=64)
    name: str | None = None


class OwnerContext(BaseModel):
    """Who submitted the document and how to label it in logs.

    ``author`` overrides the organization named inside the document.
    """

    model_config = ConfigDict(frozen=True)

    submission_file_name: str | None = None
    author: OrganizationRef | None = None
    labels: dict[str, str] = Field(default_factory=dict)
