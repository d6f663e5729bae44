"""Prompt catalogue for the answer engine."""

from datetime import date

MAIN_ASSISTANT_SYSTEM_PROMPT = (
    "You are a helpful assistant that provides clear and concise answers. "
    "Always maintain context from the previous conversation. If a follow-up question is asked, "
    "relate it to the previous topic unless it's clearly about a new subject."
)

SEARCH_NECESSITY_SYSTEM_PROMPT = (
    "You are a tool that determines if a web search would be helpful for answering a query. "
    "Respond with true only if the query likely needs real-time or factual information "
    "that might not be in your training data."
)

RELATED_QUESTIONS_SYSTEM_PROMPT = (
    "Generate 5 relevant follow-up questions based on the entire conversation context. "
    "Consider both the initial topic and any follow-up questions that were asked. Respond with JSON."
)

RELATED_QUESTIONS_REQUEST_PROMPT = (
    "Based on our entire conversation, generate 5 relevant follow-up questions. "
    "Make sure they relate to both the initial topic and any follow-ups if they're connected. "
    "Respond with JSON."
)


def get_search_check_prompt(query: str) -> str:
    return f'Query: "{query}"\nShould this query require a web search? Respond with just true or false.'


def get_search_results_prompt(results: str) -> str:
    return f"New search results for your question:\n\n{results}"


def get_planning_system_prompt() -> str:
    today = date.today()
    return (
        f"You are a research planner. Today's date is {today.isoformat()}. "
        "Break the user's question into a short ordered list of sub-steps that together answer it. "
        "For every sub-step decide whether it needs a live web search and which tools it needs "
        '(use "web_search" for searching). Respond with a JSON object of the form '
        '{"steps": [{"id": 1, "description": "...", "requires_search": true, '
        '"requires_tools": ["web_search"], "search_query": "..."}]}. '
        "Use between 1 and 4 steps. Only include search_query when requires_search is true."
    )


def get_planning_prompt(query: str) -> str:
    return f"Question: {query}\n\nReturn the plan as JSON."


def get_consolidation_system_prompt() -> str:
    today = date.today()
    return (
        f"You are an expert analyst. Today's date is {today.isoformat()}. "
        "You will be given a question, a plan that was followed to answer it, and web search results. "
        "Write a clear, well-structured answer in markdown, using the search results where relevant "
        "and citing them inline as [Title](URL). Respond with a JSON object of the form "
        '{"answer": "...", "confidence": 0.0-1.0, "sources_used": ["<url>", ...]} where '
        "sources_used lists only the URLs you actually relied on."
    )


def get_consolidation_prompt(query: str, plan_text: str, results_text: str) -> str:
    return (
        f"Question: {query}\n\n"
        f"Plan:\n{plan_text}\n\n"
        f"Search results:\n{results_text or 'No search results were found.'}"
    )
