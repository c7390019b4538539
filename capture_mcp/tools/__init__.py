"""Tool shapers, the cross-API join engine and the tool registry."""

from .joins import JoinEngine
from .registry import TOOL_GROUPS, ToolGroup, ToolName, ToolRegistry
from .sam_gov import SamGovTools
from .tango import TangoTools
from .usaspending import USAspendingTools


__all__ = [
    "JoinEngine",
    "SamGovTools",
    "TOOL_GROUPS",
    "TangoTools",
    "ToolGroup",
    "ToolName",
    "ToolRegistry",
    "USAspendingTools",
]
