"""Orders bounded context package."""
