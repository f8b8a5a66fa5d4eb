"""Restaurant-detail tool; the profile is cached by the session's client."""

from __future__ import annotations

from resto_agent.errors import ToolResult
from resto_agent.tools.base import BaseTool, SessionContext


class GetRestaurantDetailTool(BaseTool):
    @property
    def name(self) -> str:
        return "get_restaurant_detail"

    @property
    def description(self) -> str:
        return (
            "Get the details of the restaurant: name, phone number, website and "
            "general information such as opening hours. Ask what the customer wants "
            "to know first, then answer in one short message."
        )

    async def execute(self, ctx: SessionContext, args: object) -> ToolResult:
        info = await ctx.client.get_restaurant_profile()
        lines = [f"Restaurant: {info.name}" if info.name else "Restaurant details:"]
        if info.phone_number:
            lines.append(f"Phone: {info.phone_number}")
        if info.website:
            lines.append(f"Website: {info.website}")
        if info.information:
            lines.append(info.information)
        return ToolResult.success("\n".join(lines), payload=info.model_dump(by_alias=True))
