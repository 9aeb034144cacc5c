"""
NewsAI - Prompt Templates & Retrieval Constants
================================================
Centralised prompt management and the category keyword table used by
the retrieval engine.  All prompts live here so they can be versioned,
reviewed, and A/B-tested independently of application logic.

Exports
-------
SYSTEM_PROMPT, RAG_PROMPT_TEMPLATE, NO_ARTICLES_CONTEXT,
NO_MATCHING_ARTICLES_RESPONSE, NO_HISTORY_PLACEHOLDER,
GENERAL_FOCUS_INSTRUCTION, CATEGORY_FOCUS_INSTRUCTION,
GENERIC_FAILURE_MESSAGE, CATEGORY_KEYWORDS.
"""

# ══════════════════════════════════════════════════════════════════════
#  USER-FACING FIXED RESPONSES
# ══════════════════════════════════════════════════════════════════════

NO_MATCHING_ARTICLES_RESPONSE: str = (
    "I don't have any recent news articles that match your query. "
    "Please try asking about different topics or check back later "
    "as I regularly update my news database."
)

# Shown in place of the article block when retrieval found nothing.
NO_ARTICLES_CONTEXT: str = "(No matching articles were found in the news database.)"

NO_HISTORY_PLACEHOLDER: str = "(No previous conversation.)"

# Returned to HTTP callers for every server-side failure; internal
# detail stays in the logs.
GENERIC_FAILURE_MESSAGE: str = "Failed to process query"


# ══════════════════════════════════════════════════════════════════════
#  CATEGORY KEYWORDS — ordered, first match wins
# ══════════════════════════════════════════════════════════════════════
# Matching is a case-insensitive substring test against the raw query.
# Order matters: a query mentioning both "nba" and "stock" is a sports
# query.  Keep this a list of pairs so iteration order is explicit.
# Keywords must not occur inside everyday words ("ai" is in "said").

CATEGORY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("sports", ("sport", "sports", "football", "basketball", "baseball", "soccer", "tennis", "golf", "hockey", "olympics", "nfl", "nba", "mlb", "espn")),
    ("technology", ("tech", "technology", "artificial intelligence", "machine learning", "openai", "chatgpt", "computer", "software", "smartphone", "apps", "digital")),
    ("politics", ("politics", "political", "government", "election", "president", "congress", "senate")),
    ("business", ("business", "finance", "economy", "stock", "market", "company", "corporate")),
    ("crypto", ("crypto", "cryptocurrency", "bitcoin", "blockchain", "ethereum")),
    ("world", ("world", "international", "global", "country", "nation")),
]


# ══════════════════════════════════════════════════════════════════════
#  SYSTEM PROMPT
# ══════════════════════════════════════════════════════════════════════

SYSTEM_PROMPT: str = """You are a helpful news assistant.
You answer questions about current events using ONLY the news articles
supplied in the user's message.  You never invent facts, dates or
sources that are not in those articles."""


# ══════════════════════════════════════════════════════════════════════
#  RAG PROMPT TEMPLATE
# ══════════════════════════════════════════════════════════════════════

GENERAL_FOCUS_INSTRUCTION: str = "Provide comprehensive coverage of the topic"

CATEGORY_FOCUS_INSTRUCTION: str = "Focus on {category}-related content and provide detailed {category} information"

RAG_PROMPT_TEMPLATE: str = """Answer the user's question based on the following recent news articles and conversation history.

Recent News Articles ({article_count} articles found):
{articles}

Recent Conversation:
{history}

User Question: {question}

Instructions:
- Provide accurate information based ONLY on the news articles provided above
- If you found relevant articles, use them to answer the question thoroughly
- {focus}
- Be specific and cite information from the articles
- If the articles don't fully answer the question, mention what information is available
- Include relevant details like dates, sources, and key facts
- Always mention the category of news (e.g., SPORTS, TECHNOLOGY, POLITICS) when relevant

Answer:"""
