import json
import logging
import uuid
from typing import List, Optional

from pydantic import ValidationError

from ..core.audit import AuditLog
from ..core.config import Settings
from ..core.errors import PlannerFailure
from ..core.groq_client import create_chat_completion
from ..models.task import LLMTaskOutput, Plan, PlannedTask, Task
from ..tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

PREVIOUS_RESULT_HINT = "[WILL USE PREVIOUS RESULT]"

FEW_SHOT_EXAMPLE = """Example Input:
"Please create a file called meeting-notes.md and send a message to #team-updates about the new feature"

Example Output:
{
  "summary": "Create a meeting notes file and notify the team about a new feature",
  "tasks": [
    {
      "description": "Create a new file called meeting-notes.md",
      "tool": "filesystem",
      "payload": {"action": "write", "path": "meeting-notes.md", "content": "# Meeting Notes"},
      "confidence": 0.95
    },
    {
      "description": "Send a message to #team-updates about the new feature",
      "tool": "slack",
      "payload": {"action": "send_message", "channel": "#team-updates", "message": "New feature shipped!"},
      "confidence": 0.9
    }
  ]
}"""


def build_system_prompt(registry: ToolRegistry) -> str:
    return f"""You are an AI that creates SEQUENTIAL EXECUTION PLANS with proper tool chaining.

AVAILABLE TOOLS:
{registry.describe_tools()}

=== SEQUENTIAL CHAIN PLANNING ===
Create multiple tasks when the request has multiple parts:
- "Search for X and translate to Hindi" -> Task 1: search, Task 2: utility (translate)
- "Find info about Y and save to file" -> Task 1: search, Task 2: filesystem
- "Get weather and schedule reminder" -> Task 1: utility (weather), Task 2: calendar

The output of each task is passed to the next one automatically. Where a payload value
should be the previous task's output, write exactly "{PREVIOUS_RESULT_HINT}".

Use ONE task for simple questions ("What is AI?" -> search only).

=== OUTPUT FORMAT ===
Return JSON with tasks in execution order:
{{"summary": "...", "tasks": [{{"description": "...", "tool": "...", "payload": {{}}, "confidence": 0.9}}]}}"""


class PlannerAgent:
    def __init__(self, settings: Settings, registry: ToolRegistry, groq=None, audit: Optional[AuditLog] = None):
        self.settings = settings
        self.registry = registry
        self.groq = groq
        self.audit = audit

    async def generate_plan(self, text: str) -> Plan:
        """
        Decomposes a free-text request into an ordered plan.
        Strategy:
        1. Attempt to use Groq for intelligent decomposition.
        2. If Groq fails or is disabled (Resilient Fallback), use deterministic logic.
        """
        plan_id = str(uuid.uuid4())
        logger.info(f"Planner started for plan {plan_id}")

        # 1. Try Groq (Cognitive Layer)
        output = None
        if self.groq is not None:
            try:
                output = await self._plan_with_groq(text)
                logger.info(f"Groq successfully planned {len(output.tasks)} tasks.")
            except Exception as e:
                logger.warning(f"Groq planning failed: {e}. Falling back to deterministic logic.")
                output = None

        # 2. Deterministic Fallback (Safety Net)
        if output is None or not output.tasks:
            logger.info("Using deterministic planner fallback.")
            output = self._deterministic_plan(text)

        # 3. Finalize Plan
        tasks = [
            Task(
                id=f"{plan_id}-task-{index + 1}",
                description=item.description,
                tool=item.tool,
                payload=item.payload,
                confidence=item.confidence,
            )
            for index, item in enumerate(output.tasks)
        ]
        plan = Plan(id=plan_id, summary=output.summary, tasks=tasks, raw_input=text)

        if self.audit:
            self.audit.notify_plan_generated(plan.id, plan.summary, len(plan.tasks))
        return plan

    async def _plan_with_groq(self, text: str) -> LLMTaskOutput:
        response = await create_chat_completion(
            self.groq,
            self.settings,
            messages=[
                {"role": "system", "content": build_system_prompt(self.registry)},
                {"role": "user", "content": FEW_SHOT_EXAMPLE},
                {"role": "user", "content": text},
            ],
            temperature=0.3,
            max_tokens=4000,
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content
        if not content:
            raise PlannerFailure("No response from LLM")

        try:
            return LLMTaskOutput.model_validate(json.loads(content))
        except (ValueError, ValidationError) as e:
            raise PlannerFailure(f"Could not parse plan from JSON: {content[:200]}") from e

    def _deterministic_plan(self, text: str) -> LLMTaskOutput:
        available: List[str] = [t.name for t in self.registry.list_available()]
        if "search" not in available:
            raise PlannerFailure("Planner is unavailable: Groq is not configured and web search is disabled.")
        return LLMTaskOutput(
            summary=f"I'll search the web for: {text}",
            tasks=[PlannedTask(
                description=f"Search the web for: {text}",
                tool="search",
                payload={"action": "search", "query": text},
                confidence=0.5,
            )],
        )
