import time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class PipelineStage(str, Enum):
    IDLE = "idle"
    QUERY_PARSING = "query_parsing"
    TOOL_SELECTION = "tool_selection"
    EXECUTING = "executing"
    SUMMARIZING = "summarizing"
    COMPLETE = "complete"
    FAILED = "failed"


FINAL_STAGES = {PipelineStage.COMPLETE, PipelineStage.FAILED}


class QueryIntent(str, Enum):
    FACTUAL = "factual"          # facts, definitions, "what is X"
    COMPARISON = "comparison"    # "X vs Y", "compare"
    RESEARCH = "research"        # deep research, analysis
    REAL_TIME = "real_time"      # weather, stocks, current data
    ACTION = "action"            # create file, send message
    CALCULATION = "calculation"  # math, conversions
    CREATIVE = "creative"        # generate content
    GENERAL = "general"


class Citation(BaseModel):
    index: int
    title: str
    url: str
    snippet: Optional[str] = None


class TaskResult(BaseModel):
    task_id: str
    tool: str
    raw_result: str = ""
    summary: Optional[str] = None
    success: bool
    error: Optional[str] = None


class PipelineContext(BaseModel):
    """
    Ephemeral state of one top-level request.
    Owned by the request flow that created it; never shared between requests.
    """
    original_query: str
    intent: QueryIntent = QueryIntent.GENERAL
    decomposed_queries: List[str] = Field(default_factory=list)
    selected_tool: str = ""
    stage: PipelineStage = PipelineStage.IDLE
    progress: int = Field(default=0, ge=0, le=100)
    task_results: List[TaskResult] = Field(default_factory=list)
    citations: List[Citation] = Field(default_factory=list)
    final_answer: str = ""
    start_time: float = Field(default_factory=time.time)
    end_time: Optional[float] = None
