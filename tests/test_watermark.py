from datetime import datetime, timezone
from io import BytesIO

import pytest
from pypdf import PdfReader

from docportal.core.errors import MalformedInputError
from docportal.core.watermark import WatermarkAnnotation, apply_pdf_watermark

from tests.support import make_pdf


def _annotation(**overrides):
    values = dict(
        viewer_name="Sam Student",
        viewer_email="student@school.test",
        timestamp=datetime(2025, 5, 1, 8, 30, tzinfo=timezone.utc),
        verification_code="ABCDEF1234",
        ip_address="10.0.0.7",
    )
    values.update(overrides)
    return WatermarkAnnotation(**values)


def test_annotation_lines():
    annotation = _annotation()
    assert annotation.viewer_line() == "Downloaded by Sam Student (student@school.test)"
    assert annotation.timestamp_line() == "At 01/05/2025 08:30:00 UTC"
    assert annotation.code_line() == "Verification code: ABCDEF1234"
    assert annotation.ip_line() == "IP: 10.0.0.7"


def test_optional_lines_are_empty():
    annotation = _annotation(viewer_email=None, verification_code=None, ip_address=None)
    assert annotation.viewer_line() == "Downloaded by Sam Student"
    assert annotation.code_line() == ""
    assert annotation.ip_line() == ""


def test_watermark_stamps_every_page_and_changes_bytes():
    original = make_pdf("Report card", pages=3)
    snapshot = bytes(original)

    stamped = apply_pdf_watermark(original, _annotation())

    assert original == snapshot
    assert stamped != original
    reader = PdfReader(BytesIO(stamped))
    assert len(reader.pages) == 3
    for page in reader.pages:
        text = page.extract_text()
        assert "Downloaded by Sam Student" in text
        assert "ABCDEF1234" in text


@pytest.mark.filterwarnings("error:Calling:DeprecationWarning")
def test_watermark_merges_into_writer_owned_pages():
    stamped = apply_pdf_watermark(make_pdf("Transcript", pages=2), _annotation())

    reader = PdfReader(BytesIO(stamped))
    assert len(reader.pages) == 2
    assert "Downloaded by Sam Student" in reader.pages[1].extract_text()


def test_watermark_preserves_page_size():
    original = make_pdf()
    source_box = PdfReader(BytesIO(original)).pages[0].mediabox

    stamped_box = PdfReader(BytesIO(apply_pdf_watermark(original, _annotation()))).pages[0].mediabox

    assert float(stamped_box.width) == pytest.approx(float(source_box.width))
    assert float(stamped_box.height) == pytest.approx(float(source_box.height))


def test_non_latin_viewer_name_does_not_fail():
    stamped = apply_pdf_watermark(make_pdf(), _annotation(viewer_name="Zoë Łukasiewicz 王"))
    assert stamped.startswith(b"%PDF")


def test_malformed_pdf_raises():
    with pytest.raises(MalformedInputError):
        apply_pdf_watermark(b"this is not a pdf", _annotation())
