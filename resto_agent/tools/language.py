"""Language-switch tool.

The model calls ``switch_language`` when the caller speaks another supported
language.  The session asks call control for a matching voice and records
the language on the call.
"""

from __future__ import annotations

from pydantic import Field, field_validator

from resto_agent.errors import ToolResult
from resto_agent.tools.base import BaseTool, SessionContext, ToolArgs

# Spoken name -> ISO 639-1 code
SUPPORTED_LANGUAGES = {
    "english": "en",
    "dutch": "nl",
    "french": "fr",
}


def language_code(value: str) -> str:
    """Accept a supported language by name or code; return its code."""
    key = value.strip().lower()
    if key in SUPPORTED_LANGUAGES:
        return SUPPORTED_LANGUAGES[key]
    if key in SUPPORTED_LANGUAGES.values():
        return key
    raise ValueError(
        f"Can't switch to an unsupported language: {value}. "
        f"Supported languages: {', '.join(SUPPORTED_LANGUAGES)}"
    )


class SwitchLanguageArgs(ToolArgs):
    language: str = Field(
        description=(
            "The language to switch to. Must be one of: "
            + ", ".join(SUPPORTED_LANGUAGES)
        ),
    )

    @field_validator("language")
    @classmethod
    def validate_language(cls, value: str) -> str:
        return language_code(value)


class SwitchLanguageTool(BaseTool):
    args_model = SwitchLanguageArgs

    @property
    def name(self) -> str:
        return "switch_language"

    @property
    def description(self) -> str:
        return (
            "Switch to speaking in a supported language. Use this when the customer "
            "speaks in a different language and you need to respond in their language."
        )

    async def execute(self, ctx: SessionContext, args: SwitchLanguageArgs) -> ToolResult:
        name = next(key for key, code in SUPPORTED_LANGUAGES.items() if code == args.language)
        await ctx.session.switch_language(args.language)
        return ToolResult.success(
            f"Switched to {name}. Continue the conversation in {name}.",
            payload={"language": name, "languageCode": args.language},
        )
