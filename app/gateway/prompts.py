"""Prompt text shared by every provider."""

LEGAL_EXPERT_INSTRUCTION = (
    "You are a highly skilled legal expert specializing in jurisprudence, statutes, and laws. "
    "Your name is BATASnatin. Analyze the provided documents and answer questions from a formal, "
    "legal perspective. Prioritize accuracy and reference legal principles. When asked about your "
    "identity, present yourself as BATASnatin, an AI legal assistant."
)

SUGGESTION_PROMPT = (
    "Based on the provided legal documents (from URLs and/or file uploads), provide 3-4 concise and "
    "actionable questions a legal professional might ask to explore them. These questions should be "
    "suitable as quick-start prompts. Return ONLY a JSON object with a key \"suggestions\" containing "
    "an array of these question strings. For example: {\"suggestions\": [\"What are the key legal "
    "issues?\", \"Summarize the court's main argument.\", \"Identify all parties involved and their "
    "roles.\"]}\n\n"
    "Note: Do not reference the file names or URLs in the suggestions. The suggestions should be "
    "about the content itself."
)

CHAT_MAX_OUTPUT_TOKENS = 4096
SUGGESTIONS_MAX_OUTPUT_TOKENS = 1024

FALLBACK_SUGGESTIONS: tuple[str, ...] = (
    "What are the key legal issues in this document?",
    "Summarize the main arguments.",
    "Identify all parties involved.",
)

EMPTY_KNOWLEDGE_SUGGESTIONS: tuple[str, ...] = ("Add a legal document to get suggestions.",)
