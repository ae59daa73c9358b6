"""CLI for osquery-nli.

Usage:
    osquery-nli ask "Is FileVault enabled?"
    osquery-nli schedule add "Login items" "Which apps start at login?" -i daily
    osquery-nli scheduler

Environment:
    Loads .env file from current directory if present.
    Set GEMINI_API_KEY, ANTHROPIC_API_KEY or OPENAI_API_KEY for the selected provider.
"""

from osquery_nli.cli.main import app, main

__all__ = ["app", "main"]
