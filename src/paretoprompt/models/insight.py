"""Reflection insights used to bias mutation."""

from enum import Enum
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field


class EditKind(str, Enum):
    """Closed set of template edits a mutation can perform."""

    REPHRASE = "rephrase"
    ADD_CONSTRAINT = "add-constraint"
    REMOVE_SECTION = "remove-section"
    ADD_EXAMPLE = "add-example"
    REORDER = "reorder"


class Insight(BaseModel):
    """Advisory mutation hint derived from a recurring failure pattern."""

    model_config = ConfigDict(frozen=True)

    target_failure_pattern: str
    suggested_edit_kind: EditKind
    confidence: float = Field(ge=0.0, le=1.0)
    source_trace_ids: Tuple[str, ...] = ()
