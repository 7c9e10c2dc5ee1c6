"""questlog — parse QuestDB server logs into typed records and aggregate them."""

__version__ = "1.0.0"
