"""
TokenWise - AI API cost intelligence.

Parses LLM API usage logs, prices them, and recommends cost optimizations.
"""

__version__ = "1.0.0"
