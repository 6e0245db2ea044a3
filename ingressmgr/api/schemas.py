"""Pydantic response models for the HTTP endpoints."""

from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str


class StatusResponse(BaseModel):
    version: str
    running: bool
    workers: int
    queue_depth: int
    watch_namespace: str
    watches_synced: bool


class ErrorResponse(BaseModel):
    error: str
    detail: str
