"""Provider-failover gateway.

Answers a chat or suggestion request with the first LLM provider that can:
  - Request Normalizer (rich vs. flattened rendering of prompt, files, URLs)
  - Provider Adapters (Gemini rich; DeepSeek and OpenAI text-only)
  - Failover Orchestrator (sequential, priority-ordered, deadline-bounded)
  - Response Normalizer (URL retrieval metadata, fenced-JSON suggestions)
"""
