"""Base class for LLM-callable tools.

A tool is a stateless descriptor: a name, a plain-text description for the
model, a pydantic argument model (which doubles as the JSON parameter schema)
and an ``execute`` coroutine.  Everything a tool touches comes in through the
explicit :class:`SessionContext`, so one tool instance can serve every call.

``run`` is the only entry point the session uses.  It validates arguments,
executes, and folds every failure into a :class:`ToolResult` so nothing ever
raises back into the model runtime.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, ConfigDict, ValidationError

from resto_agent.backend.client import ReservationClient
from resto_agent.errors import BackendError, ErrorKind, ToolResult, ToolValidationError
from resto_agent.tenants import TenantConfig

if TYPE_CHECKING:
    from resto_agent.session import CallSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionContext:
    """Everything a tool may use during one call."""

    tenant: TenantConfig
    client: ReservationClient
    session: "CallSession"
    require_lookup_before_cancel: bool = True


class ToolArgs(BaseModel):
    """Base for tool argument models: unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


class NoArgs(ToolArgs):
    pass


def _format_validation_error(exc: ValidationError) -> str:
    """Turn a pydantic error into one sentence per field, written for the model."""
    messages: list[str] = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "arguments"
        kind = err["type"]
        if kind == "missing":
            messages.append(f"{field} is required")
        elif kind == "extra_forbidden":
            messages.append(f"{field} is not a recognized parameter")
        elif kind == "value_error" and "error" in err.get("ctx", {}):
            messages.append(str(err["ctx"]["error"]))
        else:
            messages.append(f"{field}: {err['msg']}")
    return "; ".join(messages)


def _simplify_schema(node: Any) -> Any:
    """Strip pydantic titles and collapse ``Optional[X]`` to ``X``."""
    if isinstance(node, list):
        return [_simplify_schema(item) for item in node]
    if not isinstance(node, dict):
        return node

    node = {key: value for key, value in node.items() if key != "title"}
    variants = node.get("anyOf")
    if variants is not None:
        non_null = [v for v in variants if v.get("type") != "null"]
        if len(non_null) == 1:
            node.pop("anyOf")
            node.pop("default", None)
            node.update(non_null[0])
    return {key: _simplify_schema(value) for key, value in node.items()}


class BaseTool(ABC):
    """A named, schema-validated operation exposed to the language model."""

    args_model: ClassVar[type[ToolArgs]] = NoArgs
    # Tools that end the call when they succeed
    terminal: ClassVar[bool] = False

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @property
    def parameters_schema(self) -> dict:
        schema = _simplify_schema(self.args_model.model_json_schema())
        schema.setdefault("properties", {})
        schema.setdefault("required", [])
        schema.pop("additionalProperties", None)
        return schema

    def to_openai_schema(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters_schema,
            },
        }

    def validate(self, arguments: dict[str, Any] | None) -> ToolArgs:
        """Check ``arguments`` against the schema or raise ToolValidationError."""
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ToolValidationError("arguments must be an object of named parameters")
        try:
            return self.args_model.model_validate(arguments)
        except ValidationError as exc:
            raise ToolValidationError(_format_validation_error(exc)) from None

    async def run(self, ctx: SessionContext, arguments: dict[str, Any] | None) -> ToolResult:
        """Validate, execute, and normalize every failure into a ToolResult."""
        try:
            args = self.validate(arguments)
            return await self.execute(ctx, args)
        except ToolValidationError as exc:
            return ToolResult.failure(ErrorKind.VALIDATION, str(exc))
        except BackendError as exc:
            return ToolResult.failure(ErrorKind.BACKEND, exc.message)
        except Exception:
            logger.exception("Tool %s failed unexpectedly", self.name)
            return ToolResult.failure(
                ErrorKind.INTERNAL,
                "Something went wrong while running this tool. Try again or transfer the call.",
            )

    @abstractmethod
    async def execute(self, ctx: SessionContext, args: Any) -> ToolResult:
        """Perform the tool's single operation with validated arguments."""


def field_check(check, value):
    """Run a shared argument check inside a pydantic validator.

    Re-raises ToolValidationError as ValueError so pydantic collects it with
    the other field errors.
    """
    try:
        return check(value)
    except ToolValidationError as e:
        raise ValueError(str(e)) from None


def coerce_count(value: object) -> object:
    """Accept ``"4"`` for a count; models sometimes quote numbers."""
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return value
