import json
import os
import sys

import pytest

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.append(ROOT_DIR)

from backend.db import init_db, make_engine, make_session_factory
from backend.errors import ArchiveFailed, MissingCredential
from backend.ingestion import ContractNoteUpload
from backend.store import SqlDocumentStore

SAMPLE_EXTRACTION = {
    "trades": [
        {
            "symbol": "TCS",
            "trade_type": "BUY",
            "quantity": 10,
            "price": 100,
            "order_value": 1000,
            "exchange": "NSE",
        }
    ],
    "charges": {"brokerage": 10, "stt": 10, "gst": 5, "total_charges": 25},
    "summary": {"gross_pnl": 50, "net_pnl": 25},
}


class FakeExtractor:
    def __init__(self, payload=None, text=None, error=None, api_key="test-key"):
        self.payload = SAMPLE_EXTRACTION if payload is None else payload
        self.text = text
        self.error = error
        self.api_key = api_key
        self.calls = []

    def ensure_configured(self):
        if not self.api_key:
            raise MissingCredential("API Key is missing.", status_code=503)

    def generate(self, document, filename, schema, instructions):
        self.calls.append({"document": document, "filename": filename, "schema": schema})
        if self.error is not None:
            raise self.error
        return self.text if self.text is not None else json.dumps(self.payload)


class RecordingBlobStore:
    def __init__(self, fail=False):
        self.fail = fail
        self.puts = []

    def put(self, path, data, content_type="application/pdf"):
        if self.fail:
            raise ArchiveFailed("Archive failed: bucket unavailable")
        self.puts.append((path, data, content_type))
        return f"memory://{path}"


@pytest.fixture
def engine():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return SqlDocumentStore(make_session_factory(engine))


@pytest.fixture
def pdf_upload():
    return ContractNoteUpload(
        filename="note_2024-01-05.pdf",
        content_type="application/pdf",
        data=b"%PDF-1.4 contract note",
    )
