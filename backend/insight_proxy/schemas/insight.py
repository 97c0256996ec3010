"""Schemas for the insight endpoint and the Gemini generateContent payload."""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class InsightRequest(BaseModel):
    prompt: str = Field(..., description="Prompt forwarded to the generative model")


class Part(BaseModel):
    text: str


class Content(BaseModel):
    parts: List[Part]


class GenerateContentRequest(BaseModel):
    """Minimal body accepted by Gemini ``models/*:generateContent``."""

    contents: List[Content]

    @classmethod
    def from_prompt(cls, prompt: str) -> "GenerateContentRequest":
        return cls(contents=[Content(parts=[Part(text=prompt)])])


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str = "ok"
