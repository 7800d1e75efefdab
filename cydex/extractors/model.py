"""
Model-driven extraction.

The page text is truncated, wrapped in an instruction prompt and sent to
the hosted text-generation service. The first bracketed `[...]` span of
the reply is parsed as a JSON array of office descriptions.
"""

import json
import re
from typing import Any, List, Optional

from ..logger import get_logger, StructuredLogger
from ..models import ExtractionResult, PartialEntity
from .common import stamp_entity, visible_text

MAX_CONTENT_CHARS = 8000
RAW_EXCERPT_CHARS = 1000
SUCCESS_CONFIDENCE = 0.8
EMPTY_CONFIDENCE = 0.1
SERVICE_FAILURE_CONFIDENCE = 0.0

JSON_ARRAY_RE = re.compile(r"\[[\s\S]*\]")

PROMPT_TEMPLATE = """Extract federal cybersecurity and critical infrastructure office information from this {agency} webpage.

Look for:
- Office names and locations
- Addresses and contact information
- Regional/field office designations
- Phone numbers and websites
- Roles and responsibilities

Return a JSON array of offices found. For each office, provide:
{{
  "office_name": "exact name",
  "role_type": "regional|field|resident|sector|lab",
  "address": "street address if found",
  "city": "city name",
  "state": "state abbreviation",
  "phone": "phone number if found",
  "email": "email address if found",
  "website": "website URL if found",
  "functions": ["list", "of", "functions"]
}}

Content to analyze:
{content}
"""


def build_prompt(content: str, agency: str) -> str:
    return PROMPT_TEMPLATE.format(agency=agency, content=content[:MAX_CONTENT_CHARS])


def parse_model_response(text: str) -> List[Any]:
    """
    Recover a JSON array embedded in model prose.

    Raises:
        ValueError: If no bracketed span exists or it is not a JSON array
    """
    match = JSON_ARRAY_RE.search(text or "")
    if not match:
        raise ValueError("No JSON array found in model response")
    parsed = json.loads(match.group(0))
    if not isinstance(parsed, list):
        raise ValueError("Model response JSON is not an array")
    return parsed


class ModelExtractor:
    method = "model"

    def __init__(self, model_client, logger: Optional[StructuredLogger] = None):
        self.model_client = model_client
        self.logger = logger or get_logger()

    def extract(self, content: str, source) -> ExtractionResult:
        text = visible_text(content, source.parse_type)
        excerpt = text[:RAW_EXCERPT_CHARS]

        try:
            reply = self.model_client.generate(build_prompt(text, source.agency))
        except Exception as e:
            self.logger.error("Model extraction call failed", source_id=source.id, error=str(e))
            return ExtractionResult(
                entities=[],
                confidence=SERVICE_FAILURE_CONFIDENCE,
                method=self.method,
                raw_content=excerpt,
                errors=[str(e)],
            )

        try:
            items = parse_model_response(reply)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            self.logger.warning("Failed to parse model response", source_id=source.id, error=str(e))
            return ExtractionResult(
                entities=[],
                confidence=EMPTY_CONFIDENCE,
                method=self.method,
                raw_content=excerpt,
                errors=[str(e)],
            )

        entities: List[PartialEntity] = []
        errors: List[str] = []
        for position, item in enumerate(items):
            if not isinstance(item, dict):
                errors.append(f"Item {position}: expected an object")
                continue
            partial = PartialEntity.from_dict(item)
            if not partial.office_name:
                errors.append(f"Item {position}: missing office_name")
                continue
            entities.append(stamp_entity(partial, source))

        return ExtractionResult(
            entities=entities,
            confidence=SUCCESS_CONFIDENCE if entities else EMPTY_CONFIDENCE,
            method=self.method,
            raw_content=excerpt,
            errors=errors,
        )
