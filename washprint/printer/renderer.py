"""Document renderer: payloads to layouts, ESC/POS bytes, HTML pages, PDF files and text previews.

All output is a pure function of the payload and the ``generated_at`` timestamp,
so the same input always renders to the same bytes.
"""
import io
import logging
from datetime import datetime
from typing import Any, Callable, Optional, Union

from jinja2 import Environment
from PIL import Image, ImageDraw, ImageFont

from washprint.printer.documents import (
    AssignmentReceipt,
    BagLabel,
    DocumentKind,
    DocumentLayout,
    LayoutField,
    OrderRecordReceipt,
    Payload,
    TransportStrategy,
)
from washprint.printer.escpos import ESCPOSBuilder

logger = logging.getLogger(__name__)

PLACEHOLDER = "-"
LIST_DELIMITER = ", "
LABEL_COLUMN = 18  # label width so values line up on the receipt

TITLES = {
    DocumentKind.BAG_LABEL: "BAG LABEL",
    DocumentKind.ASSIGNMENT_RECEIPT: "MACHINE ASSIGNMENT",
    DocumentKind.ORDER_RECORD_RECEIPT: "ORDER RECORD",
}


def format_value(value: Any) -> str:
    """Turn a payload value into printable text; never raises."""
    try:
        if value is None:
            return PLACEHOLDER
        if isinstance(value, (list, tuple, set, frozenset)):
            parts = [format_value(item) for item in value]
            parts = [part for part in parts if part != PLACEHOLDER]
            return LIST_DELIMITER.join(parts) if parts else PLACEHOLDER
        text = str(value).strip()
        return text or PLACEHOLDER
    except Exception:
        logger.debug("Unrenderable value of type %s", type(value).__name__, exc_info=True)
        return PLACEHOLDER


def _fields(*pairs) -> tuple:
    return tuple(LayoutField(label, format_value(value)) for label, value in pairs)


def bag_label_fields(payload: BagLabel) -> tuple:
    return _fields(
        ("Reference No", payload.order_id),
        ("Customer", payload.customer_name),
        ("Number of Bags", payload.number_of_bags),
        ("Quantity", payload.quantity),
    )


def assignment_receipt_fields(payload: AssignmentReceipt) -> tuple:
    return _fields(
        ("Tracking ID", payload.tracking_number),
        ("Item", payload.item_name),
        ("Wash Type", payload.wash_type),
        ("Process", payload.process_types),
        ("Assigned To", payload.assigned_to),
        ("Quantity", payload.quantity),
    )


def order_record_receipt_fields(payload: OrderRecordReceipt) -> tuple:
    pairs = [
        ("Order ID", payload.order_id),
        ("Customer", payload.customer_name),
        ("Item", payload.item_name),
        ("Quantity", payload.quantity),
        ("Tracking", payload.tracking_number),
    ]
    if payload.is_remaining:
        # Leftover quantity has no wash or process assigned yet
        pairs += [("Wash Type", "Unknown"), ("Process", "Unknown"), ("Status", "Remaining Quantity")]
    else:
        pairs += [("Wash Type", payload.wash_type), ("Process", payload.process_types)]
    return _fields(*pairs)


FIELD_BUILDERS = {
    DocumentKind.BAG_LABEL: bag_label_fields,
    DocumentKind.ASSIGNMENT_RECEIPT: assignment_receipt_fields,
    DocumentKind.ORDER_RECORD_RECEIPT: order_record_receipt_fields,
}


HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{{ title }}</title>
<style>
  body { margin: 0; padding: 10px; font-family: monospace; }
  .document { width: 80mm; border: 1px solid #000; padding: 5px; }
  .header { text-align: center; font-weight: bold; font-size: 16px; margin-bottom: 10px; }
  .separator { border-top: 1px solid #000; margin: 10px 0; }
  .field { font-size: 12px; line-height: 1.3; margin-bottom: 5px; }
  .field-label { font-weight: bold; }
  .footer { text-align: center; font-size: 10px; }
</style>
</head>
<body>
<div class="document">
  <div class="header">{{ title }}</div>
  <div class="separator"></div>
{% for field in fields %}
  <div class="field"><span class="field-label">{{ field.label }}:</span> {{ field.value }}</div>
{% endfor %}
  <div class="separator"></div>
  <div class="footer">{{ footer }}</div>
</div>
<script>window.onload = function () { window.print(); };</script>
</body>
</html>
"""

_jinja = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)
_html_template = _jinja.from_string(HTML_TEMPLATE)

FONT_PATHS = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationMono-Bold.ttf",
)


def _load_font(size: int):
    for path in FONT_PATHS:
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            continue
    return ImageFont.load_default()


class DocumentRenderer:
    """Renders bag labels and receipts for each transport."""

    # 72mm printable width at 203 dpi
    PAGE_WIDTH_PX = 576
    PDF_RESOLUTION = 203.0

    def __init__(self, width: int = 48, clock: Callable[[], datetime] = datetime.now):
        """Initialize renderer.

        Args:
            width: Character width per line of the thermal printer
            clock: Source of the footer timestamp when none is given
        """
        self.width = width
        self.clock = clock

    # Layouts

    def layout(self, kind: DocumentKind, payload: Payload,
               generated_at: Optional[datetime] = None) -> DocumentLayout:
        """Build the transport-neutral layout for a payload."""
        return DocumentLayout(
            title=TITLES[kind],
            fields=FIELD_BUILDERS[kind](payload),
            generated_at=generated_at or self.clock(),
        )

    def test_page_layout(self, generated_at: Optional[datetime] = None) -> DocumentLayout:
        return DocumentLayout(
            title="PRINTER TEST PAGE",
            fields=_fields(
                ("Status", "This is a test of the thermal printer."),
                ("Check", "If you can read this, the printer is working correctly."),
            ),
            generated_at=generated_at or self.clock(),
        )

    def render(self, kind: DocumentKind, payload: Payload, transport: TransportStrategy,
               generated_at: Optional[datetime] = None) -> Union[DocumentLayout, str]:
        """Render for a transport.

        Returns the layout for DIRECT and DOCUMENT (encoded later by to_escpos
        or to_pdf) and a complete HTML page for VISUAL.
        """
        layout = self.layout(kind, payload, generated_at)
        if transport is TransportStrategy.VISUAL:
            return self.to_html(layout)
        return layout

    def render_bag_label(self, payload: BagLabel, transport: TransportStrategy,
                         generated_at: Optional[datetime] = None) -> Union[DocumentLayout, str]:
        return self.render(DocumentKind.BAG_LABEL, payload, transport, generated_at)

    def render_assignment_receipt(self, payload: AssignmentReceipt, transport: TransportStrategy,
                                  generated_at: Optional[datetime] = None) -> Union[DocumentLayout, str]:
        return self.render(DocumentKind.ASSIGNMENT_RECEIPT, payload, transport, generated_at)

    def render_order_record_receipt(self, payload: OrderRecordReceipt, transport: TransportStrategy,
                                    generated_at: Optional[datetime] = None) -> Union[DocumentLayout, str]:
        return self.render(DocumentKind.ORDER_RECORD_RECEIPT, payload, transport, generated_at)

    # Encoders

    def to_escpos(self, layout: DocumentLayout) -> bytes:
        """Encode a layout as ESC/POS commands."""
        builder = ESCPOSBuilder(width=self.width)
        # Double width halves the usable columns
        separator_length = self.width // 2

        builder.styled_line(layout.title, align="center", bold=True, double_height=True, double_width=True)
        builder.align_center().line("=", separator_length)
        builder.newline()
        for field in layout.fields:
            builder.styled_line(
                f"{field.label + ':':<{LABEL_COLUMN}}{field.value}",
                align="left", bold=True, double_height=True,
            )
        builder.newline()
        builder.align_center().line("=", separator_length)
        builder.styled_line(layout.footer, align="center")
        builder.newline()
        builder.cut()
        return builder.build()

    def to_html(self, layout: DocumentLayout) -> str:
        """Render a self-contained page that opens the print dialog on load."""
        return _html_template.render(title=layout.title, fields=layout.fields, footer=layout.footer)

    def to_pdf(self, layout: DocumentLayout) -> bytes:
        """Render a single-page PDF sized for an 80mm roll."""
        title_font = _load_font(32)
        body_font = _load_font(22)
        small_font = _load_font(16)
        margin = 16
        line_height = 34

        height = margin * 2 + 56 + line_height * (len(layout.fields) + 3)
        image = Image.new("L", (self.PAGE_WIDTH_PX, height), 255)
        draw = ImageDraw.Draw(image)

        y = margin
        self._draw_centered(draw, y, layout.title, title_font)
        y += 56
        draw.line((margin, y, self.PAGE_WIDTH_PX - margin, y), fill=0, width=2)
        y += line_height // 2
        for field in layout.fields:
            draw.text((margin, y), f"{field.label}: {field.value}", font=body_font, fill=0)
            y += line_height
        y += line_height // 2
        draw.line((margin, y, self.PAGE_WIDTH_PX - margin, y), fill=0, width=2)
        y += line_height // 2
        self._draw_centered(draw, y, layout.footer, small_font)

        stamp = layout.generated_at.timetuple()
        buffer = io.BytesIO()
        image.save(
            buffer,
            format="PDF",
            resolution=self.PDF_RESOLUTION,
            title=layout.title,
            creationDate=stamp,
            modDate=stamp,
        )
        return buffer.getvalue()

    def _draw_centered(self, draw: "ImageDraw.ImageDraw", y: int, text: str, font) -> None:
        x = max(0, int((self.PAGE_WIDTH_PX - draw.textlength(text, font=font)) // 2))
        draw.text((x, y), text, font=font, fill=0)

    def to_text(self, layout: DocumentLayout) -> str:
        """Plain text preview of what the thermal printer produces."""
        lines = [
            self._align_text(layout.title, "center"),
            "=" * self.width,
            "",
        ]
        for field in layout.fields:
            lines.append(f"{field.label + ':':<{LABEL_COLUMN}}{field.value}")
        lines.append("")
        lines.append("=" * self.width)
        lines.append(self._align_text(layout.footer, "center"))
        return "\n".join(lines)

    def _align_text(self, text: str, alignment: str) -> str:
        """Align text for preview."""
        text = text.rstrip()
        if not text:
            return ""
        if alignment == "center":
            return text.center(self.width).rstrip()
        elif alignment == "right":
            return text.rjust(self.width)
        return text
