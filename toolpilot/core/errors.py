class ToolpilotError(Exception):
    """Base class for every error the pipeline raises on purpose."""


class ToolDisabledOrUnknown(ToolpilotError):
    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(f"Tool '{tool}' is not enabled or does not exist.")


class AdapterFailure(ToolpilotError):
    """An adapter could not complete its request (network, input, permission)."""


class SummarizerFailure(ToolpilotError):
    """The narrative summarizer failed; callers degrade to the raw result."""


class MalformedPlanInput(ToolpilotError):
    """A plan request is missing required fields; nothing is started."""


class PlannerFailure(ToolpilotError):
    """The planner could not turn the request into a plan."""
