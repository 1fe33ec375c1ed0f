"""Classification data models."""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class ClassificationOutcome(BaseModel):
    """Folder labels for a batch of display names.

    Attributes:
        folders: Mapping of every requested display name to a folder label.
        source: `gateway` when the model answered for every name, `partial`
            when fallback rules filled gaps, `fallback` when the model was
            unavailable and every label came from the rules.
        fallback_names: Names whose label came from the fallback classifier.
        error: Message of the gateway failure that triggered a full fallback.
    """

    folders: Dict[str, str] = Field(default_factory=dict)
    source: Literal["gateway", "partial", "fallback"] = "gateway"
    fallback_names: List[str] = Field(default_factory=list)
    error: Optional[str] = None
