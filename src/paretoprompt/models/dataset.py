"""Dataset models for the LLM evaluator gateway."""

from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, field_validator

from .candidate import PromptTemplate

DEFAULT_INPUT_VARIABLE = "text"


class DatasetEntry(BaseModel):
    """One scored case: slot values for the template and the expected answer.

    A bare string input fills the ``{text}`` slot; non-string expected
    values (labels stored as numbers or booleans) are compared as text.
    """

    input: Dict[str, Any]
    expected: str
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("input", mode="before")
    @classmethod
    def _wrap_bare_input(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {DEFAULT_INPUT_VARIABLE: value}
        return value

    @field_validator("expected", mode="before")
    @classmethod
    def _stringify_expected(cls, value: Any) -> Any:
        if isinstance(value, (bool, int, float)):
            return str(value).lower() if isinstance(value, bool) else str(value)
        return value

    def missing_variables(self, template: PromptTemplate) -> Tuple[str, ...]:
        """Template slots this entry has no value for."""
        return tuple(name for name in template.variables if name not in self.input)
