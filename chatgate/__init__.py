"""chatgate -- command dispatch, conversational prompts and cooldowns for chat bots."""

__version__ = "0.1.0"
