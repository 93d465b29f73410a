"""AI lesson content generation: submission, polling, parsing and form reconciliation."""
