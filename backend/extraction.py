# backend/extraction.py

import base64
import json
import logging
from typing import Any, Dict

import openai
from pydantic import ValidationError

from .contract import RESPONSE_SCHEMA, SYSTEM_INSTRUCTION, USER_PROMPT
from .errors import ExtractionFailed, ExtractionMalformed, MissingCredential
from .schemas import ExtractedData

logger = logging.getLogger(__name__)


def encode_pdf(data: bytes) -> str:
    """Return the PDF as a base64 data URL, the form the file input part expects."""
    return "data:application/pdf;base64," + base64.b64encode(data).decode("ascii")


class OpenAIExtractionService:
    """Hosted model that turns a contract-note PDF into schema-shaped JSON."""

    def __init__(self, api_key: str, model: str = "gpt-4o", temperature: float = 0.1, client=None):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = openai.OpenAI(api_key=self.api_key)
        return self._client

    def ensure_configured(self) -> None:
        if not self.api_key:
            raise MissingCredential("API Key is missing. Please set OPENAI_API_KEY.", status_code=503)

    def generate(self, document: bytes, filename: str, schema: Dict[str, Any], instructions: str) -> str:
        self.ensure_configured()
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                messages=[
                    {"role": "system", "content": instructions},
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "file",
                                "file": {"filename": filename, "file_data": encode_pdf(document)},
                            },
                            {"type": "text", "text": USER_PROMPT},
                        ],
                    },
                ],
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": "contract_note", "schema": schema},
                },
            )
        except openai.OpenAIError as e:
            logger.error("Extraction call failed: %s", e)
            raise ExtractionFailed(f"Extraction failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ExtractionFailed("Extraction failed: no data returned from the model")
        return content


def parse_extracted_data(text: str) -> ExtractedData:
    """Validate raw model output against the extraction contract."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ExtractionMalformed(f"Extraction malformed: response is not JSON ({e.msg})") from e

    try:
        return ExtractedData.model_validate(payload)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "<root>" for err in e.errors())
        raise ExtractionMalformed(f"Extraction malformed: invalid fields: {fields}") from e


def extract_contract_note(service, document: bytes, filename: str) -> ExtractedData:
    text = service.generate(document, filename, RESPONSE_SCHEMA, SYSTEM_INSTRUCTION)
    return parse_extracted_data(text)
