import asyncio

import pytest

from shopguide.receipt import proxy
from shopguide.receipt.base import (
    ExtractionConfigError,
    ExtractionError,
    ExtractionInputError,
    ExtractionRequest,
)


def _run(coro):
    return asyncio.run(coro)


def test_missing_document_fails_before_any_call(make_extractor):
    extractor = make_extractor("{}")
    with pytest.raises(ExtractionInputError, match="File data is required"):
        _run(proxy.extract_receipt_text(ExtractionRequest(document=None, owner_id="u1"), extractor))
    assert extractor.calls == []


def test_missing_owner_fails_before_any_call(make_extractor):
    extractor = make_extractor("{}")
    with pytest.raises(ExtractionInputError, match="User authentication required"):
        _run(proxy.extract_receipt_text(ExtractionRequest(document="aGVsbG8=", owner_id=None), extractor))
    assert extractor.calls == []


def test_empty_data_uri_payload(make_extractor):
    extractor = make_extractor("{}")
    with pytest.raises(ExtractionInputError):
        _run(proxy.extract_receipt_text(
            ExtractionRequest(document="data:image/png;base64,", owner_id="u1"), extractor,
        ))
    assert extractor.calls == []


def test_image_media_type_from_data_uri(make_extractor):
    extractor = make_extractor('{"store_name": "X"}')
    text = _run(proxy.extract_receipt_text(
        ExtractionRequest(document="data:image/png;base64,aGVsbG8=", owner_id="u1"), extractor,
    ))
    assert text == '{"store_name": "X"}'
    assert extractor.calls == [("aGVsbG8=", "image/png")]


def test_pdf_kind_forces_pdf_media_type(make_extractor):
    extractor = make_extractor("{}")
    _run(proxy.extract_receipt_text(
        ExtractionRequest(document="JVBERi0=", owner_id="u1", document_kind="pdf"), extractor,
    ))
    assert extractor.calls == [("JVBERi0=", "application/pdf")]


def test_bare_base64_defaults_to_jpeg(make_extractor):
    extractor = make_extractor("{}")
    _run(proxy.extract_receipt_text(ExtractionRequest(document="aGVsbG8=", owner_id="u1"), extractor))
    assert extractor.calls[0][1] == "image/jpeg"


def test_unexpected_error_is_wrapped(make_extractor):
    extractor = make_extractor(error=ConnectionError("boom"))
    with pytest.raises(ExtractionError, match="boom"):
        _run(proxy.extract_receipt_text(ExtractionRequest(document="aGVsbG8=", owner_id="u1"), extractor))
    assert len(extractor.calls) == 1


def test_default_extractor_comes_from_factory(monkeypatch, make_extractor):
    extractor = make_extractor("ok")
    monkeypatch.setattr(proxy, "get_receipt_extractor", lambda: extractor)
    assert _run(proxy.extract_receipt_text(ExtractionRequest(document="aGVsbG8=", owner_id="u1"))) == "ok"


def test_unconfigured_provider(monkeypatch):
    monkeypatch.setenv("RECEIPT_PROVIDER", "openai")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ExtractionConfigError):
        _run(proxy.extract_receipt_text(ExtractionRequest(document="aGVsbG8=", owner_id="u1")))


def test_unknown_provider(monkeypatch):
    monkeypatch.setenv("RECEIPT_PROVIDER", "carrier-pigeon")
    with pytest.raises(ExtractionConfigError):
        _run(proxy.extract_receipt_text(ExtractionRequest(document="aGVsbG8=", owner_id="u1")))
