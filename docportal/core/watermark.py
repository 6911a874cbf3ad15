"""
Download-time PDF watermarking.

Each page of the source PDF is merged with a one-page overlay drawn by fpdf2:
a small semi-transparent block bottom-left (viewer, timestamp, code, IP) and
the viewer line repeated top-right. Stamping changes the file hash, which is
why download hashes are recorded in the verification log.
"""
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import Optional

from fpdf import FPDF
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from docportal.core.config import settings
from docportal.core.errors import MalformedInputError

FONT_SIZE = 10
LINE_HEIGHT = 14
MARGIN_X = 32
BOTTOM_Y = 32
TOP_Y = 42


@dataclass
class WatermarkAnnotation:
    viewer_name: str
    timestamp: datetime
    viewer_email: Optional[str] = None
    verification_code: Optional[str] = None
    ip_address: Optional[str] = None

    def viewer_line(self) -> str:
        if self.viewer_email:
            return f"Downloaded by {self.viewer_name} ({self.viewer_email})"
        return f"Downloaded by {self.viewer_name}"

    def timestamp_line(self) -> str:
        return f"At {self.timestamp.strftime(settings.WATERMARK_TIMESTAMP_FORMAT)}"

    def code_line(self) -> str:
        return f"Verification code: {self.verification_code}" if self.verification_code else ""

    def ip_line(self) -> str:
        return f"IP: {self.ip_address}" if self.ip_address else ""


def _latin1(text: str) -> str:
    # Core Helvetica only covers latin-1
    return text.encode("latin-1", errors="replace").decode("latin-1")


def _render_overlay(width: float, height: float, annotation: WatermarkAnnotation) -> bytes:
    bottom_lines = [
        annotation.viewer_line(),
        annotation.timestamp_line(),
        annotation.code_line(),
        annotation.ip_line(),
    ]
    top_lines = [annotation.viewer_line(), annotation.code_line(), annotation.ip_line()]

    pdf = FPDF(unit="pt", format=(width, height))
    pdf.set_auto_page_break(auto=False)
    pdf.set_margins(0, 0, 0)
    pdf.add_page()
    pdf.set_font("Helvetica", size=FONT_SIZE)

    # fpdf measures y from the top edge; PDF user space measures from the bottom
    with pdf.local_context(fill_opacity=0.6):
        pdf.set_text_color(102, 102, 102)
        for index, line in enumerate(_latin1(l) for l in bottom_lines if l):
            pdf.text(MARGIN_X, height - BOTTOM_Y + index * LINE_HEIGHT, line)

    with pdf.local_context(fill_opacity=0.4):
        pdf.set_text_color(178, 178, 178)
        for index, line in enumerate(_latin1(l) for l in top_lines if l):
            x = max(MARGIN_X, width - MARGIN_X - pdf.get_string_width(line))
            pdf.text(x, TOP_Y + index * LINE_HEIGHT, line)

    return bytes(pdf.output())


def _check_readable(pdf_bytes: bytes) -> None:
    try:
        reader = PdfReader(BytesIO(pdf_bytes))
        pages = list(reader.pages)
    except (PyPdfError, ValueError, KeyError, TypeError) as exc:
        raise MalformedInputError(f"Unable to parse PDF for watermarking: {exc}") from exc
    if not pages:
        raise MalformedInputError("PDF has no pages to watermark")


def apply_pdf_watermark(pdf_bytes: bytes, annotation: WatermarkAnnotation) -> bytes:
    """Return a stamped copy of ``pdf_bytes``; the input buffer is left untouched."""
    _check_readable(pdf_bytes)

    # Pages must belong to the writer before content is merged into them
    writer = PdfWriter(clone_from=BytesIO(pdf_bytes))
    for page in writer.pages:
        width = float(page.mediabox.width)
        height = float(page.mediabox.height)
        overlay = PdfReader(BytesIO(_render_overlay(width, height, annotation))).pages[0]
        page.merge_page(overlay)

    out = BytesIO()
    writer.write(out)
    return out.getvalue()
