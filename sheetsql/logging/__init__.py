"""Logging setup (labeled stdout output) and the JSON-lines error log."""
