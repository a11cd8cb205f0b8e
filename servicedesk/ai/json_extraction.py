"""Pull a JSON object out of free-form AI text and validate it."""

import json
import logging
from typing import Optional, TypeVar

from pydantic import ValidationError

from servicedesk.errors import AIResponseError
from servicedesk.schemas.ai_payloads import AIPayload

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=AIPayload)


def extract_first_json_object(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` substring of ``text``, or None.

    Braces inside JSON strings are ignored, as are escaped quotes.

    Examples:
        >>> extract_first_json_object('Sure! {"a": {"b": "}"}} trailing')
        '{"a": {"b": "}"}}'
        >>> extract_first_json_object("no json here") is None
        True
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        # Unbalanced from this brace; try the next opening brace.
        start = text.find("{", start + 1)
    return None


def parse_payload(text: str, model: type[P]) -> P:
    """Validate the first JSON object in ``text`` against ``model``.

    Raises:
        AIResponseError: No balanced object, invalid JSON, not an object,
            no field shared with the schema, or a schema violation.
    """
    candidate = extract_first_json_object(text)
    if candidate is None:
        raise AIResponseError("No JSON object found in AI reply")
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise AIResponseError(f"Malformed JSON in AI reply: {e.msg}") from None
    if not isinstance(data, dict):
        raise AIResponseError("AI reply JSON is not an object")
    if not model.known_keys() & data.keys():
        raise AIResponseError(f"AI reply shares no field with {model.__name__}")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise AIResponseError(
            f"AI reply failed {model.__name__} validation ({e.error_count()} errors)"
        ) from None
