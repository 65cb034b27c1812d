from __future__ import annotations
from typing import Any

# ========================================
#           INPUT VALIDATION HELPERS
# ========================================
"""
Helper functions the envelope decoder calls to decide if an incoming JSON
message is properly formatted before it is handed to the router.
"""


def is_request_id(value: Any) -> bool:
    """
    request_id must be a non-negative JSON integer.

    bool is a subclass of int in Python, so True/False are rejected explicitly.
    """
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def is_json_object(value: Any) -> bool:
    """True for a decoded JSON object with string keys only."""
    return isinstance(value, dict) and all(isinstance(k, str) for k in value)
