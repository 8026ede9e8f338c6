"""
Query intent classification and pipeline-context bookkeeping.

The intent only selects the instructional template handed to the summarizer;
it never changes how tasks are executed.
"""
import re
import time
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..models.pipeline import Citation, FINAL_STAGES, PipelineContext, PipelineStage, QueryIntent

_ARITHMETIC = re.compile(r"\d+\s*[+\-*/]\s*\d+")


def _contains(*needles: str) -> Callable[[str], bool]:
    return lambda q: any(n in q for n in needles)


def _starts_with(*prefixes: str) -> Callable[[str], bool]:
    return lambda q: q.startswith(prefixes)


# Ordered: the first matching rule wins.
INTENT_RULES: List[Tuple[QueryIntent, Callable[[str], bool]]] = [
    (QueryIntent.COMPARISON, _contains(" vs ", "versus", "compare", "difference between", "better than")),
    (QueryIntent.REAL_TIME, _contains("weather", "stock price", "current", "today", "right now", "live")),
    (QueryIntent.CALCULATION, lambda q: bool(_ARITHMETIC.search(q))
        or _contains("calculate", "convert", "how much is", "currency")(q)),
    (QueryIntent.ACTION, _contains("create", "write", "send", "schedule", "delete", "make a file")),
    (QueryIntent.FACTUAL, lambda q: _starts_with("what is", "who is", "when did", "where is", "define")(q)
        or "meaning of" in q),
    (QueryIntent.RESEARCH, lambda q: _contains("explain", "how does", "why is", "research", "analysis", "in depth")(q)
        or len(q) > 100),
    (QueryIntent.CREATIVE, _contains("generate", "write me", "create a story", "poem", "creative")),
]


def detect_intent(query: str) -> QueryIntent:
    lowered = query.lower().strip()
    for intent, matches in INTENT_RULES:
        if matches(lowered):
            return intent
    return QueryIntent.GENERAL


_INTENT_GUIDELINES: Dict[QueryIntent, str] = {
    QueryIntent.FACTUAL: """You are a FACTUAL KNOWLEDGE EXPERT. The user is asking for specific facts or definitions.

RESPONSE GUIDELINES:
- Start with a clear, direct answer to the question
- Provide factual, verified information only
- Use bullet points for multiple facts
- Include dates, numbers, and specific details where relevant
- Cite sources inline [1], [2] after each fact
- Keep the response focused and concise
- If the data doesn't contain the answer, say so clearly""",

    QueryIntent.COMPARISON: """You are a COMPARISON ANALYST. The user wants to understand differences or similarities.

RESPONSE GUIDELINES:
- Start with a brief overview of both subjects
- Create a comparison table with key differences
- Highlight pros and cons of each
- Provide a clear recommendation if asked
- Use data and statistics to support comparisons
- Cite sources for each claim [1], [2]
- End with a summary of key takeaways""",

    QueryIntent.RESEARCH: """You are a RESEARCH ANALYST providing in-depth analysis.

RESPONSE GUIDELINES:
- Start with an executive summary (2-3 paragraphs)
- Break down complex topics into sections
- Include quantitative data where available
- Discuss multiple perspectives
- Provide context and background
- Use headers to organize information
- Cite all claims with sources [1], [2]
- End with actionable insights or conclusions""",

    QueryIntent.REAL_TIME: """You are a REAL-TIME DATA REPORTER.

RESPONSE GUIDELINES:
- Present the current/live data clearly
- Include timestamp if available
- Provide context for the numbers
- Compare to historical data if available
- Keep the response concise and scannable
- Note any limitations or data freshness issues""",

    QueryIntent.ACTION: """You are a TASK EXECUTION ASSISTANT confirming completed actions.

RESPONSE GUIDELINES:
- Confirm what action was taken
- Provide details of the result
- Include any relevant identifiers (file paths, IDs, etc.)
- Suggest next steps if applicable
- Be concise and action-oriented""",

    QueryIntent.CALCULATION: """You are a CALCULATION ASSISTANT.

RESPONSE GUIDELINES:
- Show the calculation clearly
- Provide the final result prominently
- Include the formula or method used
- Add context or explanation if needed
- For conversions, show both values clearly""",

    QueryIntent.CREATIVE: """You are a CREATIVE CONTENT GENERATOR.

RESPONSE GUIDELINES:
- Be creative and engaging
- Match the requested tone and style
- Provide complete, polished content
- Include structure (paragraphs, sections) as needed
- Avoid generic or templated responses""",

    QueryIntent.GENERAL: """You are a COMPREHENSIVE AI ASSISTANT.

RESPONSE GUIDELINES:
- Provide a helpful, complete answer
- Use appropriate formatting (bullets, headers)
- Be informative but concise
- Cite sources where applicable [1], [2]
- Anticipate follow-up questions""",
}


def get_intent_prompt(intent: QueryIntent, original_query: str) -> str:
    guidelines = _INTENT_GUIDELINES.get(intent, _INTENT_GUIDELINES[QueryIntent.GENERAL])
    return (
        f'ORIGINAL USER QUESTION: "{original_query}"\n\n'
        "You must answer the above question directly and comprehensively.\n\n"
        f"{guidelines}"
    )


_VERSUS = re.compile(r"(.+?)\s+(?:vs\.?|versus|compared to|or)\s+(.+)", re.IGNORECASE)
RESEARCH_SUFFIXES = ("recent developments", "expert analysis")


def decompose_query(query: str, intent: QueryIntent) -> List[str]:
    """Expands comparison/research queries into sub-queries; the query itself is always first."""
    queries = [query]

    if intent == QueryIntent.COMPARISON:
        match = _VERSUS.match(query)
        if match:
            first, second = match.group(1).strip(), match.group(2).strip()
            queries.append(f"{first} features benefits pros cons")
            queries.append(f"{second} features benefits pros cons")

    if intent == QueryIntent.RESEARCH:
        queries.extend(f"{query} {suffix}" for suffix in RESEARCH_SUFFIXES)

    return queries


# "**1. Title** ... 🔗 https://..." (snippet listings) and "**[1] Title**\n🔗 https://..." (deep fetch)
_SOURCE_PATTERNS = [
    re.compile(r"\*\*\d+\.\s*([^*]+)\*\*[^🔗]*🔗\s*(https?://\S+)"),
    re.compile(r"\*\*\[\d+\]\s*([^*]+)\*\*\s*\n🔗\s*(https?://\S+)"),
]


def extract_sources(raw_result: str) -> List[Dict[str, str]]:
    sources: List[Dict[str, str]] = []
    seen = set()
    for pattern in _SOURCE_PATTERNS:
        for match in pattern.finditer(raw_result):
            url = match.group(2).strip()
            if url in seen:
                continue
            seen.add(url)
            sources.append({"title": match.group(1).strip(), "url": url})
    return sources


def extract_citations(sources: Iterable[Mapping[str, str]], start: int = 1) -> List[Citation]:
    return [
        Citation(index=start + i, title=s["title"], url=s["url"], snippet=s.get("snippet"))
        for i, s in enumerate(sources)
    ]


def format_citations(citations: List[Citation]) -> str:
    if not citations:
        return ""
    lines = [f"[{c.index}] {c.title} - {c.url}" for c in citations]
    return "\n\n📚 **Sources:**\n" + "\n".join(lines)


def create_pipeline_context(query: str) -> PipelineContext:
    intent = detect_intent(query)
    return PipelineContext(
        original_query=query,
        intent=intent,
        decomposed_queries=decompose_query(query, intent),
    )


def update_stage(context: PipelineContext, stage: PipelineStage, progress: Optional[int] = None) -> PipelineContext:
    """Moves the context to a new stage. Informational only: it gates nothing."""
    context.stage = stage
    if progress is not None:
        context.progress = max(0, min(100, progress))
    context.end_time = time.time() if stage in FINAL_STAGES else None
    return context
