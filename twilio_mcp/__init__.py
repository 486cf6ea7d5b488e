"""MCP server and Twilio webhook receiver for SMS/MMS conversations."""

__version__ = "1.0.0"
