# tasks/ai_engine/__init__.py
"""
AI proxies used by the task form.

- suggester: Gemini suggestions (description, category, priority, next steps)
- priority: OpenAI priority suggestion for a task text
- views: the two browser-facing endpoints
"""
