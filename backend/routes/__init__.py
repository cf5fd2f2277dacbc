"""
HTTP routes, one router per domain.
"""

API_PREFIX = "/api/v1"
