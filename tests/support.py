from fpdf import FPDF

from docportal.core.auth import User

ADMIN = User("admin-1", email="admin@school.test", role="admin", name="Ada Admin")
TEACHER = User("teacher-1", email="teacher@school.test", role="teacher", name="Tom Teacher")
OTHER_TEACHER = User("teacher-2", email="other@school.test", role="teacher", name="Olga Other")
STUDENT = User("student-1", email="student@school.test", role="student", name="Sam Student")


def make_pdf(text: str = "Certificate of completion", pages: int = 1) -> bytes:
    pdf = FPDF()
    pdf.set_font("Helvetica", size=14)
    for page in range(pages):
        pdf.add_page()
        pdf.cell(0, 10, f"{text} ({page + 1})")
    return bytes(pdf.output())
