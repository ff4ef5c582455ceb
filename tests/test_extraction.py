import base64
import copy
import json
from unittest.mock import MagicMock

import openai
import pytest

from backend.contract import RESPONSE_SCHEMA, SYSTEM_INSTRUCTION
from backend.errors import ExtractionFailed, ExtractionMalformed, MissingCredential
from backend.extraction import (
    OpenAIExtractionService,
    encode_pdf,
    extract_contract_note,
    parse_extracted_data,
)

from conftest import SAMPLE_EXTRACTION, FakeExtractor


def fake_completion(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


def test_encode_pdf_data_url():
    encoded = encode_pdf(b"%PDF-1.4")
    prefix = "data:application/pdf;base64,"
    assert encoded.startswith(prefix)
    assert base64.b64decode(encoded[len(prefix):]) == b"%PDF-1.4"


def test_parse_valid_extraction():
    data = parse_extracted_data(json.dumps(SAMPLE_EXTRACTION))
    assert data.trades[0].symbol == "TCS"
    assert data.trades[0].trade_type == "BUY"
    assert data.charges.total_charges == 25
    assert data.charges.stamp_duty is None
    assert data.summary.net_pnl == 25


def test_parse_accepts_empty_trade_list():
    payload = copy.deepcopy(SAMPLE_EXTRACTION)
    payload["trades"] = []
    assert parse_extracted_data(json.dumps(payload)).trades == []


def test_parse_rejects_non_json():
    with pytest.raises(ExtractionMalformed):
        parse_extracted_data("Sorry, I could not read that document.")


@pytest.mark.parametrize(
    "mutate",
    [
        lambda p: p["summary"].pop("net_pnl"),
        lambda p: p.pop("charges"),
        lambda p: p["charges"].pop("gst"),
        lambda p: p["trades"][0].pop("exchange"),
        lambda p: p["trades"][0].update(trade_type="HOLD"),
        lambda p: p["trades"][0].update(quantity="10"),
        lambda p: p["trades"][0].update(price=-1),
    ],
)
def test_parse_rejects_contract_violations(mutate):
    payload = copy.deepcopy(SAMPLE_EXTRACTION)
    mutate(payload)
    with pytest.raises(ExtractionMalformed):
        parse_extracted_data(json.dumps(payload))


def test_malformed_message_names_the_field():
    payload = copy.deepcopy(SAMPLE_EXTRACTION)
    del payload["summary"]["net_pnl"]
    with pytest.raises(ExtractionMalformed) as exc:
        parse_extracted_data(json.dumps(payload))
    assert "summary.net_pnl" in exc.value.message


def test_extract_contract_note_passes_contract():
    extractor = FakeExtractor()
    data = extract_contract_note(extractor, b"%PDF", "note.pdf")
    assert data.summary.gross_pnl == 50
    assert extractor.calls[0]["schema"] is RESPONSE_SCHEMA


def test_service_sends_pdf_and_schema():
    client = MagicMock()
    client.chat.completions.create.return_value = fake_completion(json.dumps(SAMPLE_EXTRACTION))
    service = OpenAIExtractionService("sk-test", model="gpt-4o", client=client)

    text = service.generate(b"%PDF-1.4", "note.pdf", RESPONSE_SCHEMA, SYSTEM_INSTRUCTION)

    assert json.loads(text) == SAMPLE_EXTRACTION
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o"
    assert kwargs["response_format"]["json_schema"]["schema"] is RESPONSE_SCHEMA
    assert kwargs["messages"][0] == {"role": "system", "content": SYSTEM_INSTRUCTION}
    file_part = kwargs["messages"][1]["content"][0]
    assert file_part["file"]["filename"] == "note.pdf"
    assert file_part["file"]["file_data"] == encode_pdf(b"%PDF-1.4")


def test_service_wraps_client_errors():
    client = MagicMock()
    client.chat.completions.create.side_effect = openai.OpenAIError("rate limited")
    service = OpenAIExtractionService("sk-test", client=client)
    with pytest.raises(ExtractionFailed):
        service.generate(b"%PDF", "note.pdf", RESPONSE_SCHEMA, SYSTEM_INSTRUCTION)


def test_service_empty_response_fails():
    client = MagicMock()
    client.chat.completions.create.return_value = fake_completion(None)
    service = OpenAIExtractionService("sk-test", client=client)
    with pytest.raises(ExtractionFailed):
        service.generate(b"%PDF", "note.pdf", RESPONSE_SCHEMA, SYSTEM_INSTRUCTION)


def test_service_without_key_makes_no_call():
    client = MagicMock()
    service = OpenAIExtractionService("", client=client)
    with pytest.raises(MissingCredential) as exc:
        service.generate(b"%PDF", "note.pdf", RESPONSE_SCHEMA, SYSTEM_INSTRUCTION)
    assert exc.value.status_code == 503
    client.chat.completions.create.assert_not_called()
