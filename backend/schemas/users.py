"""Pydantic schemas for the users endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class UserCreateRequest(BaseModel):
    """Body of ``POST /api/users``.

    Both fields are optional at the schema level so that missing values are
    reported by the service as a 400 with a single, stable error code.
    """

    name: str | None = Field(default=None, description="Display name (non-empty).")
    email: str | None = Field(default=None, description="Unique e-mail address.")


class User(BaseModel):
    """A user row as stored in the relational store."""

    id: int
    name: str
    email: str
    created_at: datetime
    updated_at: datetime | None = None
