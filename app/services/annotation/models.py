"""
Annotation Data Models

Dataclasses for catalog entities (images, categories) and rectangle annotations.

All entities serialize with to_dict()/from_dict() using the application field
names (camelCase: categoryId, uploadDate, imageId). This is the shape written
to the local store and sent to the demo API.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Dict, Any, Iterable, Tuple
import uuid


UNCATEGORIZED = "Uncategorized"


@dataclass(frozen=True)
class ColorSwatch:
    """Palette entry for annotation outlines"""
    hex: str
    name: str


PALETTE: Tuple[ColorSwatch, ...] = (
    ColorSwatch("#ef4444", "Red"),
    ColorSwatch("#10b981", "Green"),
    ColorSwatch("#3b82f6", "Blue"),
    ColorSwatch("#f59e0b", "Orange"),
    ColorSwatch("#8b5cf6", "Purple"),
    ColorSwatch("#06b6d4", "Cyan"),
)

DEFAULT_COLOR = PALETTE[0].hex


def find_swatch(hex_value: str) -> Optional[ColorSwatch]:
    """Look up a palette entry by hex value (case-insensitive)"""
    if not hex_value:
        return None
    wanted = hex_value.lower()
    for swatch in PALETTE:
        if swatch.hex == wanted:
            return swatch
    return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp as written by the browser or the local store"""
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.isoformat()
    text = str(value)
    # fromisoformat() only accepts a trailing "Z" from Python 3.11 on
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    # Timestamps are kept as naive local time so they stay comparable
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _optional_id(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


class IdOrigin(str, Enum):
    """Where an annotation identifier was issued"""
    LOCAL = "local"
    PERSISTED = "persisted"


@dataclass(frozen=True)
class AnnotationId:
    """
    Tagged annotation identifier

    The origin decides whether an annotation has been persisted, never the
    shape of the value, so server ids can contain any characters.
    """
    origin: IdOrigin
    value: str

    @classmethod
    def local(cls) -> "AnnotationId":
        """Issue a fresh identifier for an unsaved annotation"""
        return cls(origin=IdOrigin.LOCAL, value=uuid.uuid4().hex)

    @classmethod
    def persisted(cls, value: Any) -> "AnnotationId":
        return cls(origin=IdOrigin.PERSISTED, value=str(value))

    @property
    def is_local(self) -> bool:
        return self.origin is IdOrigin.LOCAL

    @property
    def is_persisted(self) -> bool:
        return self.origin is IdOrigin.PERSISTED

    def __str__(self) -> str:
        return self.value


@dataclass
class Category:
    """
    Image category

    Attributes:
        name: Display name (must not be blank)
        description: Optional free text
        id: Storage identifier, None until created
        created_at: Set by the backend that stored the category
    """
    name: str
    description: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("Category name must not be empty")

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
        }
        if self.created_at is not None:
            data["created_at"] = format_timestamp(self.created_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Category":
        return cls(
            id=_optional_id(data.get("id")),
            name=data["name"],
            description=data.get("description"),
            created_at=parse_timestamp(data.get("created_at")),
        )


@dataclass
class CatalogImage:
    """
    Image referenced by URL

    Attributes:
        name: Display name
        url: External image URL (pixels are never stored here)
        id: Storage identifier, None until created
        category_id: Weak reference to a Category
        upload_date: When the image was registered
        metadata: Free-form string key/value pairs
        created_at: Set by the backend that stored the image
    """
    name: str
    url: str
    id: Optional[str] = None
    category_id: Optional[str] = None
    upload_date: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, str] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "categoryId": self.category_id,
            "uploadDate": format_timestamp(self.upload_date),
            "metadata": dict(self.metadata),
        }
        if self.created_at is not None:
            data["created_at"] = format_timestamp(self.created_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CatalogImage":
        return cls(
            id=_optional_id(data.get("id")),
            name=data["name"],
            url=data["url"],
            category_id=_optional_id(data.get("categoryId")),
            upload_date=parse_timestamp(data.get("uploadDate")) or datetime.now(),
            metadata={str(k): str(v) for k, v in (data.get("metadata") or {}).items()},
            created_at=parse_timestamp(data.get("created_at")),
        )


@dataclass
class Annotation:
    """
    Rectangle drawn over an image

    Coordinates are display-space pixels at draw time. Width and height keep
    the sign of the drag direction.

    Attributes:
        image_id: Owning image
        x, y: Anchor (pointer-down) position
        width, height: Signed extent from the anchor
        color: Palette hex value
        label: Optional text label
        id: Tagged identifier (local until persisted)
        created_at: Commit or storage time, used for ordering; None when the
            backend does not record one
    """
    image_id: str
    x: float
    y: float
    width: float
    height: float
    color: str = DEFAULT_COLOR
    label: Optional[str] = None
    id: AnnotationId = field(default_factory=AnnotationId.local)
    created_at: Optional[datetime] = field(default_factory=datetime.now)

    @property
    def is_persisted(self) -> bool:
        return self.id.is_persisted

    def get_bbox(self) -> Tuple[float, float, float, float]:
        """Bounding box (left, top, width, height) with positive extent"""
        left = min(self.x, self.x + self.width)
        top = min(self.y, self.y + self.height)
        return (left, top, abs(self.width), abs(self.height))

    def exceeds(self, min_size: float) -> bool:
        """Whether both sides are strictly larger than min_size"""
        return abs(self.width) > min_size and abs(self.height) > min_size

    def to_fields(self) -> Dict[str, Any]:
        """Fields sent on create (no identifier)"""
        return {
            "imageId": self.image_id,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "color": self.color,
            "label": self.label,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id.value}
        data.update(self.to_fields())
        if self.created_at is not None:
            data["created_at"] = format_timestamp(self.created_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Annotation":
        """Build an annotation read back from storage"""
        return cls(
            id=AnnotationId.persisted(data["id"]),
            image_id=str(data["imageId"]),
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
            color=data.get("color") or DEFAULT_COLOR,
            label=data.get("label"),
            created_at=parse_timestamp(data.get("created_at")),
        )


def category_name(categories: Optional[Iterable[Category]], category_id: Optional[str]) -> str:
    """Name of the referenced category, or "Uncategorized" when it is missing"""
    if category_id is None:
        return UNCATEGORIZED
    for category in categories or []:
        if category.id == str(category_id):
            return category.name
    return UNCATEGORIZED


def images_in_category(images: Iterable[CatalogImage], category_id: Optional[str]) -> List[CatalogImage]:
    """Images whose category matches; None selects every image"""
    if category_id is None:
        return list(images)
    return [image for image in images if image.category_id == str(category_id)]
