"""
Parsing helpers for model output.
"""

from relay.parsing.json_extractor import extract_json

__all__ = ["extract_json"]
