"""ESC/POS command builder for thermal printers."""


class ESCPOSBuilder:
    """Builder for ESC/POS printer commands."""

    # ESC/POS Command Constants
    ESC = b'\x1b'
    GS = b'\x1d'

    # Initialize printer
    INIT = ESC + b'\x40'  # ESC @

    # Print mode
    NORMAL_SIZE = ESC + b'\x21\x00'    # ESC ! 0

    # ESC ! print mode bits
    MODE_BOLD = 0x08
    MODE_DOUBLE_HEIGHT = 0x10
    MODE_DOUBLE_WIDTH = 0x20

    # Alignment
    ALIGN_LEFT = ESC + b'\x61\x00'    # ESC a 0
    ALIGN_CENTER = ESC + b'\x61\x01'  # ESC a 1
    ALIGN_RIGHT = ESC + b'\x61\x02'   # ESC a 2

    # Paper control
    CUT_FULL = GS + b'\x56\x00'  # GS V 0 - Full cut
    CUT_PARTIAL = GS + b'\x56\x01'  # GS V 1 - Partial cut
    FEED_LINE = b'\n'

    def __init__(self, width: int = 48, encoding: str = "cp437"):
        """Initialize builder.

        Args:
            width: Character width per line (48 for 80mm, 32 for 58mm paper)
            encoding: Codepage used for text; unencodable characters become '?'
        """
        self.width = width
        self.encoding = encoding
        self._buffer = bytearray()
        self._buffer.extend(self.INIT)

    def reset(self) -> "ESCPOSBuilder":
        """Reset the buffer and initialize printer."""
        self._buffer = bytearray()
        self._buffer.extend(self.INIT)
        return self

    # Text formatting methods

    def text(self, content: str) -> "ESCPOSBuilder":
        """Add plain text."""
        self._buffer.extend(content.encode(self.encoding, errors="replace"))
        return self

    def newline(self, count: int = 1) -> "ESCPOSBuilder":
        """Add newline(s)."""
        self._buffer.extend(self.FEED_LINE * count)
        return self

    def mode(self, bold: bool = False, double_height: bool = False,
             double_width: bool = False) -> "ESCPOSBuilder":
        """Select print mode (ESC !) from combined bold and size flags."""
        flags = 0
        if bold:
            flags |= self.MODE_BOLD
        if double_height:
            flags |= self.MODE_DOUBLE_HEIGHT
        if double_width:
            flags |= self.MODE_DOUBLE_WIDTH
        self._buffer.extend(self.ESC + b'\x21' + bytes([flags]))
        return self

    def styled_line(self, content: str, align: str = "left", bold: bool = False,
                    double_height: bool = False, double_width: bool = False) -> "ESCPOSBuilder":
        """Print one line with its own alignment and print mode, then restore normal mode."""
        self.align(align)
        styled = bold or double_height or double_width
        if styled:
            self.mode(bold, double_height, double_width)
        self.text(content)
        if styled:
            self._buffer.extend(self.NORMAL_SIZE)
        return self.newline()

    # Alignment methods

    def align(self, alignment: str) -> "ESCPOSBuilder":
        """Set alignment by name: left, center or right."""
        if alignment == "center":
            return self.align_center()
        if alignment == "right":
            return self.align_right()
        return self.align_left()

    def align_left(self) -> "ESCPOSBuilder":
        """Set left alignment."""
        self._buffer.extend(self.ALIGN_LEFT)
        return self

    def align_center(self) -> "ESCPOSBuilder":
        """Set center alignment."""
        self._buffer.extend(self.ALIGN_CENTER)
        return self

    def align_right(self) -> "ESCPOSBuilder":
        """Set right alignment."""
        self._buffer.extend(self.ALIGN_RIGHT)
        return self

    # Line formatting

    def line(self, char: str = "-", length: int = None) -> "ESCPOSBuilder":
        """Print a horizontal line."""
        self._buffer.extend((char * (length or self.width)).encode(self.encoding, errors="replace"))
        self._buffer.extend(self.FEED_LINE)
        return self

    # Paper control

    def cut(self, partial: bool = False) -> "ESCPOSBuilder":
        """Cut the paper."""
        # Feed a bit before cutting to ensure content clears the cutter
        self._buffer.extend(self.FEED_LINE * 4)
        self._buffer.extend(self.CUT_PARTIAL if partial else self.CUT_FULL)
        return self

    # Build output

    def build(self) -> bytes:
        """Build and return the command buffer."""
        return bytes(self._buffer)

    def __bytes__(self) -> bytes:
        """Allow bytes() conversion."""
        return self.build()

    def __len__(self) -> int:
        """Return buffer length."""
        return len(self._buffer)
