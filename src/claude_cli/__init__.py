"""
claude-cli - agentic coding assistant for the Claude Messages API.
"""

__version__ = "0.1.0"
