"""Document payloads, print jobs and batches."""
import base64
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Iterator, Optional, Tuple, Union


class TransportStrategy(Enum):
    """How a rendered document reaches paper."""
    DIRECT = "direct"      # ESC/POS bytes written to the connected device
    VISUAL = "visual"      # HTML page for the operator's print dialog
    DOCUMENT = "document"  # downloadable PDF file

    @classmethod
    def parse(cls, value: Union[str, "TransportStrategy", None]) -> Optional["TransportStrategy"]:
        """Accept enum members, their values, or None."""
        if value is None or isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown transport: {value}")


class DocumentKind(Enum):
    """Printable document kinds."""
    BAG_LABEL = "bag-label"
    ASSIGNMENT_RECEIPT = "assignment-receipt"
    ORDER_RECORD_RECEIPT = "order-record"


def _pick(data: dict, *keys: str, default: Any = None) -> Any:
    """Return the first present key, accepting both snake_case and camelCase names."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _as_tuple(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


@dataclass(frozen=True)
class BagLabel:
    """Label stuck on a customer's bag of garments."""
    order_id: Any
    customer_name: Optional[str] = None
    bag_number: Optional[int] = None  # kept in history snapshots, not printed
    number_of_bags: Optional[str] = None
    quantity: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "BagLabel":
        return cls(
            order_id=_pick(data, "order_id", "orderId"),
            customer_name=_pick(data, "customer_name", "customerName"),
            bag_number=_pick(data, "bag_number", "bagNumber"),
            number_of_bags=_pick(data, "number_of_bags", "numberOfBags"),
            quantity=_pick(data, "quantity"),
        )


@dataclass(frozen=True)
class AssignmentReceipt:
    """Receipt handed over with a batch assigned to a machine operator."""
    tracking_number: Optional[str] = None
    item_name: Optional[str] = None
    wash_type: Optional[str] = None
    process_types: Tuple[str, ...] = ()
    assigned_to: Optional[str] = None
    quantity: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> "AssignmentReceipt":
        return cls(
            tracking_number=_pick(data, "tracking_number", "trackingNumber"),
            item_name=_pick(data, "item_name", "itemName"),
            wash_type=_pick(data, "wash_type", "washType"),
            process_types=_as_tuple(_pick(data, "process_types", "processTypes")),
            assigned_to=_pick(data, "assigned_to", "assignedTo"),
            quantity=_pick(data, "quantity"),
        )


@dataclass(frozen=True)
class OrderRecordReceipt:
    """Receipt for one record (line) of a customer order."""
    order_id: Any
    customer_name: Optional[str] = None
    item_name: Optional[str] = None
    quantity: Optional[int] = None
    wash_type: Optional[str] = None
    process_types: Tuple[str, ...] = ()
    tracking_number: Optional[str] = None
    is_remaining: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "OrderRecordReceipt":
        return cls(
            order_id=_pick(data, "order_id", "orderId"),
            customer_name=_pick(data, "customer_name", "customerName"),
            item_name=_pick(data, "item_name", "itemName"),
            quantity=_pick(data, "quantity"),
            wash_type=_pick(data, "wash_type", "washType"),
            process_types=_as_tuple(_pick(data, "process_types", "processTypes")),
            tracking_number=_pick(data, "tracking_number", "trackingNumber"),
            is_remaining=bool(_pick(data, "is_remaining", "isRemaining", default=False)),
        )


Payload = Union[BagLabel, AssignmentReceipt, OrderRecordReceipt]

PAYLOAD_TYPES = {
    DocumentKind.BAG_LABEL: BagLabel,
    DocumentKind.ASSIGNMENT_RECEIPT: AssignmentReceipt,
    DocumentKind.ORDER_RECORD_RECEIPT: OrderRecordReceipt,
}


def payload_from_dict(kind: DocumentKind, data: dict) -> Payload:
    """Build the payload type for ``kind`` from a JSON object."""
    if not isinstance(data, dict):
        raise ValueError(f"Payload for {kind.value} must be an object")
    return PAYLOAD_TYPES[kind].from_dict(data)


@dataclass(frozen=True)
class LayoutField:
    """One labelled line of a printed document."""
    label: str
    value: str


@dataclass(frozen=True)
class DocumentLayout:
    """Transport-neutral layout: title, ordered fields, footer timestamp."""
    title: str
    fields: Tuple[LayoutField, ...]
    generated_at: datetime

    @property
    def footer(self) -> str:
        return f"Generated: {self.generated_at.strftime('%Y-%m-%d %H:%M:%S')}"


@dataclass(frozen=True)
class PrintJob:
    """A document kind, its payload and the transport it resolved to."""
    kind: DocumentKind
    payload: Payload
    transport: TransportStrategy

    def __post_init__(self):
        expected = PAYLOAD_TYPES[self.kind]
        if not isinstance(self.payload, expected):
            raise TypeError(
                f"{self.kind.value} job needs a {expected.__name__} payload, "
                f"got {type(self.payload).__name__}"
            )


@dataclass(frozen=True)
class PrintBatch:
    """Ordered jobs of one kind, printed with a delay between them."""
    jobs: Tuple[PrintJob, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "jobs", tuple(self.jobs))
        kinds = {job.kind for job in self.jobs}
        if len(kinds) > 1:
            raise ValueError("All jobs in a batch must be the same document kind")

    @classmethod
    def of(cls, kind: DocumentKind, payloads: Iterable[Payload],
           transport: TransportStrategy) -> "PrintBatch":
        return cls(tuple(PrintJob(kind, payload, transport) for payload in payloads))

    @property
    def kind(self) -> Optional[DocumentKind]:
        return self.jobs[0].kind if self.jobs else None

    @property
    def requires_direct(self) -> bool:
        return any(job.transport is TransportStrategy.DIRECT for job in self.jobs)

    def __len__(self) -> int:
        return len(self.jobs)

    def __iter__(self) -> Iterator[PrintJob]:
        return iter(self.jobs)


@dataclass
class PrintResult:
    """Outcome of one executed job."""
    kind: DocumentKind
    transport: TransportStrategy
    content: Optional[Union[str, bytes]] = None
    mimetype: Optional[str] = None
    filename: Optional[str] = None
    preview: str = ""

    def to_dict(self, include_content: bool = False) -> dict:
        """Convert to dictionary for API responses.

        PDF content is base64 encoded when included.
        """
        data = {
            "kind": self.kind.value,
            "transport": self.transport.value,
            "mimetype": self.mimetype,
            "filename": self.filename,
            "preview": self.preview,
        }
        if include_content and self.content is not None:
            content = self.content
            if isinstance(content, bytes):
                content = base64.b64encode(content).decode("ascii")
            data["content"] = content
        return data


def payload_to_dict(payload: Payload) -> dict:
    """Snapshot a payload for history records."""
    return asdict(payload)
