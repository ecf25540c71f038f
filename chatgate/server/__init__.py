"""HTTP surface: app factory, entry point and the bot webhook."""
