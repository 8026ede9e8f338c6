import inspect
import logging
from datetime import date
from typing import AsyncIterator, Dict, List, Optional, Tuple

from ..core.config import Settings
from ..core.errors import SummarizerFailure
from ..core.groq_client import create_chat_completion
from ..core.intent import detect_intent, extract_sources, get_intent_prompt
from ..models.pipeline import QueryIntent

logger = logging.getLogger(__name__)

RAW_RESULT_LIMIT = 12000
MAX_SOURCES_APPENDED = 8

DATA_INTEGRITY_RULES = """=== DATA INTEGRITY PROTOCOL ===
BASE YOUR ANSWER STRICTLY ON THE PROVIDED DATA. NEVER extrapolate, assume, or invent information.

CRITICAL VALIDATION RULES:
1. NEVER fabricate information about future events, scores, or outcomes
2. NEVER generate hypothetical scenarios or "what if" projections
3. ONLY report facts explicitly stated in the data
4. For incomplete data, clearly state limitations

=== FORMATTING PROTOCOL ===
- Use **BOLD** for key terms and numbers
- Use bullet points for lists and tables for comparisons
- INLINE CITATIONS: [1], [2] after each fact, matching the numbered sources"""


class SummarizerAgent:
    """Turns a tool's raw output into prose, grounded only on that output."""

    def __init__(self, settings: Settings, groq=None):
        self.settings = settings
        self.groq = groq

    def build_messages(
        self,
        task_description: str,
        tool_name: str,
        raw_result: str,
        original_query: Optional[str] = None,
        intent_prompt: Optional[str] = None,
    ) -> Tuple[List[Dict[str, str]], List[Dict[str, str]], int]:
        query = original_query or task_description
        intent = detect_intent(query)
        if intent_prompt is None:
            intent_prompt = get_intent_prompt(intent, query)

        lowered = task_description.lower()
        is_comparison = intent == QueryIntent.COMPARISON or "vs" in lowered or "compare" in lowered
        max_tokens = 8000 if is_comparison else 6000

        sources = extract_sources(raw_result)
        sources_ref = (
            "\n".join(f'[{i + 1}] "{s["title"]}" - {s["url"]}' for i, s in enumerate(sources))
            if sources else "No sources identified"
        )

        logger.info(
            f"[LLM Summary] tool={tool_name} intent={intent.value} sources={len(sources)} max_tokens={max_tokens}"
        )

        system = (
            "You are an EXPERT RESEARCH ANALYST that produces data-driven answers.\n\n"
            f"CURRENT DATE: {date.today().isoformat()}\n\n"
            f"{intent_prompt}\n\n{DATA_INTEGRITY_RULES}"
        )
        user = (
            f'ORIGINAL USER QUESTION: "{query}"\n\n'
            f"Task Being Executed: {task_description}\n\n"
            f"Available Sources:\n{sources_ref}\n\n"
            f"Tool Output:\n{raw_result[:RAW_RESULT_LIMIT]}\n\n"
            "Answer the ORIGINAL USER QUESTION using only the tool output above, "
            "with inline [1], [2] citations after each fact."
        )
        messages = [{"role": "system", "content": system}, {"role": "user", "content": user}]
        return messages, sources, max_tokens

    async def summarize(
        self,
        task_description: str,
        tool_name: str,
        raw_result: str,
        original_query: Optional[str] = None,
        intent_prompt: Optional[str] = None,
    ) -> str:
        if self.groq is None:
            raise SummarizerFailure("Summarizer is not configured")

        messages, sources, max_tokens = self.build_messages(
            task_description, tool_name, raw_result, original_query, intent_prompt
        )
        try:
            response = await create_chat_completion(
                self.groq, self.settings, messages=messages, temperature=0.2, max_tokens=max_tokens
            )
        except Exception as e:
            raise SummarizerFailure(f"Summarization failed: {e}") from e

        summary = response.choices[0].message.content or raw_result

        # Ensure sources are included
        if sources and "Sources:" not in summary:
            summary += "\n\n📚 **Sources:**\n" + "\n".join(
                f"[{i + 1}] {s['title']} - {s['url']}" for i, s in enumerate(sources[:MAX_SOURCES_APPENDED])
            )

        logger.info(f"[LLM Summary] Response Length: {len(summary)} chars")
        return summary

    async def stream_summarize(
        self,
        task_description: str,
        tool_name: str,
        raw_result: str,
        original_query: Optional[str] = None,
        intent_prompt: Optional[str] = None,
    ) -> AsyncIterator[str]:
        if self.groq is None:
            raise SummarizerFailure("Summarizer is not configured")

        messages, _, max_tokens = self.build_messages(
            task_description, tool_name, raw_result, original_query, intent_prompt
        )
        try:
            stream = await create_chat_completion(
                self.groq, self.settings, messages=messages, temperature=0.2, max_tokens=max_tokens, stream=True
            )
        except Exception as e:
            raise SummarizerFailure(f"Summarization failed: {e}") from e

        try:
            async for chunk in stream:
                content = chunk.choices[0].delta.content if chunk.choices else None
                if content:
                    yield content
        except Exception as e:
            raise SummarizerFailure(f"Summary stream broke: {e}") from e
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                closed = close()
                if inspect.isawaitable(closed):
                    await closed
