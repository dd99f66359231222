"""Prompt templates for LLM interactions."""

from __future__ import annotations

ANALYSIS_CONTENT_LIMIT = 15_000
RAG_CONTEXT_LIMIT = 2_000

ANALYSIS_SYSTEM_PROMPT = "You are an expert analyst. Output only valid JSON."

THREE_PILLAR_PROMPT = """You are an elite personal insight analyst. Analyze the following content and
extract actionable intelligence across THREE dimensions.

## CONTENT TO ANALYZE:
{content}

## SOURCE METADATA:
- Title: {title}
- URL: {url}

## OUTPUT FORMAT (JSON):
Return a JSON object with the following structure. If a dimension has no relevance, set its value
to null.

{{
  "core_topic": "One-sentence summary of the main subject",
  "pillars": {{
    "career_business": {{
      "relevance_score": 0-100,
      "insight": "How this helps current job/business optimization or strengthens professional moat",
      "action_items": ["Specific actionable recommendation 1", "..."]
    }},
    "market_startup": {{
      "relevance_score": 0-100,
      "insight": "Hidden market pain points, unmet needs, or new business models enabled by tech",
      "action_items": ["Potential opportunity 1", "..."]
    }},
    "self_growth": {{
      "relevance_score": 0-100,
      "insight": "New mental models, technical cognition upgrades, or global perspective expansion",
      "action_items": ["Learning or mindset shift 1", "..."]
    }}
  }},
  "maturity_rating": "ADOPT | TRIAL | ASSESS | HOLD",
  "tags": ["AI", "SaaS", "Management", "..."],
  "key_quotes": ["Verbatim important quote from source 1", "..."]
}}

## RULES:
1. Be brutally honest - if content is low-value fluff, say so
2. Action items must be SPECIFIC and PERSONAL (not generic advice)
3. Always ground insights in actual content - no hallucination
4. Maturity rating follows Tech Radar logic:
   - ADOPT: Proven, use now
   - TRIAL: Worth pursuing, understand risks
   - ASSESS: Worth exploring, not ready for production
   - HOLD: Proceed with caution
5. Extract 1-3 key quotes that support your analysis
6. Output ONLY valid JSON, no markdown fences"""

RAG_SYSTEM_PROMPT = (
    "You are a growth research assistant. Answer based only on provided context. "
    "Be concise and actionable."
)

NO_RELEVANT_CONTENT_ANSWER = "No relevant content found in knowledge base."


def get_three_pillar_prompt(content: str, title: str, url: str) -> str:
    """Render the analysis prompt; content is truncated to the analysis limit."""
    return THREE_PILLAR_PROMPT.format(
        content=content[:ANALYSIS_CONTENT_LIMIT],
        title=title,
        url=url,
    )


def format_context_block(title: str, url: str, content: str) -> str:
    return f"Title: {title}\nURL: {url}\nContent: {content[:RAG_CONTEXT_LIMIT]}"


def get_rag_prompt(query: str, context_blocks: list[str]) -> str:
    context = "\n\n".join(context_blocks)
    return f"Question: {query}\n\nContext:\n{context}"
