"""Question definition models.

A ``QuestionDefinition`` is mostly an opaque payload for the rendering
layer.  The traversal core reads exactly four fields:

  - id: matched against skip rules and the per-question status map
  - field_name: the context key the answer is stored under
  - required: counted by the progress calculator
  - show_if: optional condition; a false result hides the question

Everything else (input type, options, help text, bounds) passes through
untouched.

Question text is a tagged variant so context-dependent wording stays out of
the core:

  - LiteralText:  a fixed string
  - ComputedText: a pure function ``context -> str``
  - TemplateText: a Jinja2 template rendered against the context

Plain strings coerce to ``LiteralText`` and plain callables to
``ComputedText``.  The UI resolves text once per render via
:func:`render_text`.

Serialised keys use camelCase (``fieldName``, ``showIf``, ``inputType``)
to match authored flow files; snake_case names are accepted too.
"""

from __future__ import annotations

from typing import Any, Annotated, Callable, Dict, List, Literal, Mapping, Optional, Union

import jinja2
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .condition import Condition

_TEMPLATE_ENV = jinja2.Environment(autoescape=False, keep_trailing_newline=True)


# --- Question text variants ---

class LiteralText(BaseModel):
    """Fixed question text."""

    kind: Literal["literal"] = "literal"
    value: str

    def render(self, context: Mapping[str, Any]) -> str:
        return self.value


class ComputedText(BaseModel):
    """Question text computed from the answer context by a pure function."""

    kind: Literal["computed"] = "computed"
    fn: Callable[[Dict[str, Any]], str]

    def render(self, context: Mapping[str, Any]) -> str:
        return str(self.fn(dict(context)))


class TemplateText(BaseModel):
    """Question text authored as a Jinja2 template, e.g.
    ``"How many of the {{ householdSize }} people work?"``.
    """

    kind: Literal["template"] = "template"
    template: str

    def render(self, context: Mapping[str, Any]) -> str:
        return _TEMPLATE_ENV.from_string(self.template).render(dict(context))


QuestionText = Annotated[
    Union[LiteralText, ComputedText, TemplateText],
    Field(discriminator="kind"),
]


# --- Options ---

class QuestionOption(BaseModel):
    """A selectable option for select/radio/checkbox inputs."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    value: Union[str, int, float, bool]
    label: str
    description: Optional[str] = None
    disabled: bool = False


# --- Question ---

class QuestionDefinition(BaseModel):
    """One question's content plus the fields the engine reads."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    id: str
    text: QuestionText
    field_name: str = ""
    required: bool = False
    show_if: Optional[Condition] = None

    # --- Pass-through rendering fields ---
    input_type: str = "text"
    description: Optional[QuestionText] = None
    help_text: Optional[str] = None
    placeholder: Optional[str] = None
    default_value: Any = None
    options: List[QuestionOption] = []
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    max_length: Optional[int] = None
    tags: List[str] = []
    metadata: Dict[str, Any] = {}

    @field_validator("text", "description", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> Any:
        """Accept bare strings, callables and ``{template: ...}`` dicts."""
        if isinstance(v, str):
            return LiteralText(value=v)
        if isinstance(v, dict) and "kind" not in v:
            if "template" in v:
                return TemplateText(template=v["template"])
            if "value" in v:
                return LiteralText(value=v["value"])
        if callable(v) and not isinstance(v, BaseModel):
            return ComputedText(fn=v)
        return v


def render_text(question: QuestionDefinition, context: Mapping[str, Any]) -> str:
    """Resolve a question's display text against the current context."""
    return question.text.render(context)
