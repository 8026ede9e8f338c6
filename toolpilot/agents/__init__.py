from .planner import PlannerAgent
from .summarizer import SummarizerAgent

__all__ = ["PlannerAgent", "SummarizerAgent"]
