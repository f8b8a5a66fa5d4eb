"""Session-control tools: ending the call and handing it to a human.

Both are terminal.  They do not hang up themselves; they ask the session to
end once their result has been recorded, and the session drives the
telephony side through its ``CallControl``.
"""

from __future__ import annotations

from resto_agent.errors import ToolResult
from resto_agent.tools.base import BaseTool, SessionContext


class EndCallTool(BaseTool):
    terminal = True

    @property
    def name(self) -> str:
        return "end_call"

    @property
    def description(self) -> str:
        return (
            "End the call. Only call this after you have said goodbye to the customer "
            "and the conversation is over. Also use it to end prank calls, or when "
            "nobody answers after you greeted them and asked if they are still there."
        )

    async def execute(self, ctx: SessionContext, args: object) -> ToolResult:
        ctx.session.request_end()
        return ToolResult.success("The call is ending.")


class TransferToManagerTool(BaseTool):
    terminal = True

    @property
    def name(self) -> str:
        return "transfer_to_manager"

    @property
    def description(self) -> str:
        return (
            "Transfer the call to the restaurant manager. Use this for parties of 11 "
            "or more guests, reservations that cannot be cancelled, repeated system "
            "failures, or anything that needs a human. No parameters are needed; the "
            "manager's number is configured. Before calling it, tell the customer you "
            "are connecting them with the manager. This ends your part of the call."
        )

    async def execute(self, ctx: SessionContext, args: object) -> ToolResult:
        ctx.session.request_transfer()
        return ToolResult.success("Transferring the call to the manager.")
