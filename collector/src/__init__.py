"""
Statistics collector for a HomeWizard-style Wi-Fi energy socket.

Polls the socket's local REST API, normalizes measurement and state
documents into samples, persists them in a SQL statistics store, prunes
samples past the retention window and reports aggregate health.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

__version__ = "2.0.0"
