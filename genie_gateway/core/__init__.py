"""Core settings, logging, errors and middleware."""
