"""Built-in automation handlers, keyed by automations.type in the registry."""
