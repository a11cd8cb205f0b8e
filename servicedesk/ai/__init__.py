from servicedesk.ai.client import (
    DisabledTextClient,
    OpenAITextClient,
    TextGenerationClient,
    create_text_client,
)
from servicedesk.ai.json_extraction import extract_first_json_object, parse_payload

__all__ = [
    "TextGenerationClient",
    "OpenAITextClient",
    "DisabledTextClient",
    "create_text_client",
    "extract_first_json_object",
    "parse_payload",
]
