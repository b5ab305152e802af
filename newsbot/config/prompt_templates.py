"""
Newsbot - Prompt Templates
===========================
Centralised prompt management for the RAG engine.  All prompts live
here so they can be reviewed and versioned independently of
application logic.

Exports
-------
SYSTEM_PROMPT, RAG_PROMPT_TEMPLATE, CONTEXT_BLOCK_TEMPLATE,
NO_CONTEXT_PLACEHOLDER, NO_HISTORY_PLACEHOLDER.
"""

SYSTEM_PROMPT: str = (
    "You are a helpful news assistant. Only use the CONTEXT. "
    "Cite sources like [1], [2]. If unsure, say you are unsure."
)

# One numbered block per retrieved passage.
CONTEXT_BLOCK_TEMPLATE: str = "---\n[{index}] TITLE: {title}\nURL: {url}\nTEXT: {text}"

RAG_PROMPT_TEMPLATE: str = """CONTEXT:
{context}

CHAT HISTORY:
{history}

USER: {question}
ASSISTANT:"""

NO_CONTEXT_PLACEHOLDER: str = "(No relevant articles found. Tell the user you are unsure.)"

NO_HISTORY_PLACEHOLDER: str = "(No previous conversation.)"
