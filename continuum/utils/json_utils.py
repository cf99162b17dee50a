"""
JSON utilities for cleaning completion-service responses.
"""

import json
from typing import Any


def clean_json_response(response: str) -> str:
    """Strip code fences and any chatter around the JSON object.

    Args:
        response: Raw LLM response

    Returns:
        Cleaned JSON string
    """
    response = response.strip()

    # Remove ```json and ``` markers
    if response.startswith('```json'):
        response = response[7:]
    elif response.startswith('```'):
        response = response[3:]

    if response.endswith('```'):
        response = response[:-3]

    response = response.strip()

    # Models sometimes wrap the object in a sentence; keep the outermost braces
    if not response.startswith('{'):
        start = response.find('{')
        end = response.rfind('}')
        if start != -1 and end > start:
            response = response[start:end + 1]

    return response


def load_json_object(response: str) -> Any:
    """Clean a response and decode it.

    Raises:
        json.JSONDecodeError: If the cleaned text is not valid JSON
    """
    return json.loads(clean_json_response(response))
