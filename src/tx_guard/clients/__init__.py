from .reasoning_client import EXPLANATION_TOOL, EXPLANATION_TOOL_NAME, ReasoningClient

__all__ = ["ReasoningClient", "EXPLANATION_TOOL", "EXPLANATION_TOOL_NAME"]
