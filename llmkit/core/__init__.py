"""Configuration, capability detection, invocation client and registry."""
