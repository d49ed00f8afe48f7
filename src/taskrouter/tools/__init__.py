"""Tool executors available to orchestrator plans."""

from .executor import TOOL_DEFINITIONS, ToolDefinition, ToolExecutor

__all__ = ["TOOL_DEFINITIONS", "ToolDefinition", "ToolExecutor"]
