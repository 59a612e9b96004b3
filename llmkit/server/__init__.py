"""FastAPI service exposing the provider registry."""
