"""LLM-callable tools for the restaurant voice agent."""

from .availability import CheckAvailabilityTool
from .base import BaseTool, SessionContext
from .call import EndCallTool, TransferToManagerTool
from .language import SwitchLanguageTool
from .reservations import (
    CancelReservationTool,
    GetReservationByIdTool,
    MakeReservationTool,
    SearchReservationsTool,
    UpdateReservationTool,
)
from .restaurant import GetRestaurantDetailTool

__all__ = [
    "BaseTool",
    "CancelReservationTool",
    "CheckAvailabilityTool",
    "EndCallTool",
    "GetReservationByIdTool",
    "GetRestaurantDetailTool",
    "MakeReservationTool",
    "SearchReservationsTool",
    "SessionContext",
    "SwitchLanguageTool",
    "TransferToManagerTool",
    "UpdateReservationTool",
    "build_toolset",
]


def build_toolset() -> dict[str, BaseTool]:
    """Instantiate every tool, keyed by the name the model sees."""
    tools: list[BaseTool] = [
        GetRestaurantDetailTool(),
        SwitchLanguageTool(),
        CheckAvailabilityTool(),
        SearchReservationsTool(),
        GetReservationByIdTool(),
        MakeReservationTool(),
        UpdateReservationTool(),
        CancelReservationTool(),
        TransferToManagerTool(),
        EndCallTool(),
    ]
    return {tool.name: tool for tool in tools}
