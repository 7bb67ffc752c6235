"""Core module - session memory, fact extraction, exceptions and logging setup."""
