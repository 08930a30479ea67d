"""
deepsite — AI web-site builder gateway.
Routes chat requests across interchangeable LLM providers with fallback.
"""

__version__ = "2.0.0"
