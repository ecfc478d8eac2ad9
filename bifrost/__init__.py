"""Bifrost - language server tools for AI assistants.

Bridges the Model Context Protocol to a Language Server Protocol engine:
hover, go-to-definition, find-references and diagnostics become tools an AI
assistant can call.
"""

__version__ = "0.1.0"
