"""Tool to generate sample travel invoice PDFs for trying out the extraction upload."""
import sys
from pathlib import Path
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

SAMPLES = {
    "sample_invoice.pdf": [
        "SKYWAY TRAVEL AGENCY",
        "Invoice",
        "",
        "Ticket Number:      T128",
        "Booking Reference:  BR461",
        "Agent ID:           A004",
        "Invoice Date:       2024-07-18",
        "",
        "Flight  LHR -> JFK  economy, 1 adult",
        "",
        "Amount Due:         $842.30",
    ],
    # Free-text date and currency noise exercise the lenient parsing paths
    "messy_invoice.pdf": [
        "Globetrotter Tours Ltd.",
        "",
        "Ticket no. T129 / Booking ref BR462",
        "Issued by agent A001 on July 21st, 2024",
        "",
        "Total: USD 1,275.00",
    ],
}


def create_pdf(lines: list[str], output_pdf_path: str):
    print(f"Generating {output_pdf_path}...")

    c = canvas.Canvas(output_pdf_path, pagesize=A4)
    width, height = A4

    # 72 points per inch. Start near the top left
    x_margin = 50
    y_position = height - 50
    line_height = 14

    c.setFont("Courier", 10)

    for line in lines:
        c.drawString(x_margin, y_position, line)
        y_position -= line_height

        # Simple page break if we get too low
        if y_position < 50:
            c.showPage()
            c.setFont("Courier", 10)
            y_position = height - 50

    c.save()
    print(f"Created {output_pdf_path} successfully.")


if __name__ == "__main__":
    out_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else Path(__file__).parent.parent / "sample_invoices"
    out_dir.mkdir(parents=True, exist_ok=True)

    for name, lines in SAMPLES.items():
        create_pdf(lines, str(out_dir / name))
