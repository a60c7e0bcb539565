"""
HTTP API

Versioned REST endpoints, error mapping and request throttling.
"""
