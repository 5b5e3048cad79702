"""Shared utilities: model service client and error handling."""
