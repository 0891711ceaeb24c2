"""
Managed database backend

Transactional CRUD against a relational database through SQLAlchemy. Ids are
assigned by the database and rows are ordered by the server-side created_at
timestamp (id breaks ties).

Columns use snake_case wire names. They are translated to and from the
application field names at this boundary:

    category_id  <->  categoryId
    upload_date  <->  uploadDate
    image_id     <->  imageId

Every application field has exactly one column, so the translation is
lossless in both directions.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
import json
import logging

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    event,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from app import config
from app.services.annotation.models import format_timestamp, parse_timestamp
from .base import (
    ANNOTATIONS,
    CATEGORIES,
    IMAGES,
    KIND_LABELS,
    AnnotationRepository,
    EntityRepository,
    FieldsLike,
    PersistenceGateway,
    as_fields,
)
from .errors import NotFound, TransportFailure, ValidationRejected

logger = logging.getLogger(__name__)

metadata_obj = MetaData()

categories_table = Table(
    "categories",
    metadata_obj,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("description", Text, nullable=True),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

images_table = Table(
    "images",
    metadata_obj,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("url", Text, nullable=False),
    Column("category_id", Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True),
    # ISO text keeps the timestamp exactly as written
    Column("upload_date", String(64), nullable=False),
    Column("metadata", Text, nullable=False, default="{}"),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

annotations_table = Table(
    "annotations",
    metadata_obj,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("image_id", Integer, ForeignKey("images.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("x", Float, nullable=False),
    Column("y", Float, nullable=False),
    Column("width", Float, nullable=False),
    Column("height", Float, nullable=False),
    Column("color", String(16), nullable=False),
    Column("label", Text, nullable=True),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

TABLES = {
    CATEGORIES: categories_table,
    IMAGES: images_table,
    ANNOTATIONS: annotations_table,
}

# Application field name -> column name
FIELD_MAP: Dict[str, Dict[str, str]] = {
    CATEGORIES: {
        "id": "id",
        "name": "name",
        "description": "description",
        "created_at": "created_at",
    },
    IMAGES: {
        "id": "id",
        "name": "name",
        "url": "url",
        "categoryId": "category_id",
        "uploadDate": "upload_date",
        "metadata": "metadata",
        "created_at": "created_at",
    },
    ANNOTATIONS: {
        "id": "id",
        "imageId": "image_id",
        "x": "x",
        "y": "y",
        "width": "width",
        "height": "height",
        "color": "color",
        "label": "label",
        "created_at": "created_at",
    },
}

# Columns holding integer references
_ID_COLUMNS = {"id", "category_id", "image_id"}


def _to_db_id(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationRejected(f"Not a database id: {value!r}") from e


def to_wire(kind: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Translate application fields to column values

    Raises:
        ValidationRejected: If a field has no column
    """
    mapping = FIELD_MAP[kind]
    unknown = set(fields) - set(mapping)
    if unknown:
        raise ValidationRejected(f"Unknown {kind} fields: {', '.join(sorted(unknown))}")

    row = {}
    for name, value in fields.items():
        column = mapping[name]
        if column in _ID_COLUMNS:
            value = _to_db_id(value)
        elif column == "metadata":
            value = json.dumps(value or {}, ensure_ascii=False, sort_keys=True)
        elif column == "created_at":
            value = parse_timestamp(value)
        row[column] = value
    return row


def from_wire(kind: str, row: Dict[str, Any]) -> Dict[str, Any]:
    """Translate column values to application fields"""
    fields = {}
    for name, column in FIELD_MAP[kind].items():
        if column not in row:
            continue
        value = row[column]
        if column in _ID_COLUMNS:
            value = str(value) if value is not None else None
        elif column == "metadata":
            value = json.loads(value) if value else {}
        elif column == "created_at" and isinstance(value, datetime):
            value = format_timestamp(value)
        fields[name] = value
    return fields


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseRepository(EntityRepository):
    """One table, one entity kind"""

    def __init__(self, gateway: "DatabaseGateway", kind: str):
        self.gateway = gateway
        self.kind = kind
        self.table = TABLES[kind]

    def _entity(self, row) -> Any:
        return self.to_entity(from_wire(self.kind, dict(row._mapping)))

    def _validated(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Run fields through the entity type so writes obey the data model"""
        data = {k: v for k, v in fields.items() if k != "created_at"}
        try:
            entity = self.validate(self.to_entity({**data, "id": None}))
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationRejected(f"Invalid {KIND_LABELS[self.kind].lower()} fields: {e}") from e
        normalized = entity.to_dict()
        normalized.pop("id", None)
        normalized.pop("created_at", None)
        return to_wire(self.kind, normalized)

    def _ordered(self):
        return select(self.table).order_by(self.table.c.created_at, self.table.c.id)

    def get_all(self) -> List:
        with self.gateway.connect() as conn:
            return [self._entity(row) for row in conn.execute(self._ordered())]

    def get_by_id(self, entity_id):
        try:
            key = _to_db_id(entity_id)
        except ValidationRejected:
            return None
        with self.gateway.connect() as conn:
            row = conn.execute(select(self.table).where(self.table.c.id == key)).first()
        return self._entity(row) if row is not None else None

    def create(self, fields: FieldsLike):
        values = self._validated(as_fields(fields))
        with self.gateway.transaction() as conn:
            result = conn.execute(insert(self.table).values(**values))
            new_id = result.inserted_primary_key[0]
            row = conn.execute(select(self.table).where(self.table.c.id == new_id)).first()
        return self._entity(row)

    def update(self, entity_id, fields: FieldsLike):
        key = self._existing_key(entity_id)
        with self.gateway.transaction() as conn:
            row = conn.execute(select(self.table).where(self.table.c.id == key)).first()
            if row is None:
                raise NotFound(KIND_LABELS[self.kind], entity_id)
            current = from_wire(self.kind, dict(row._mapping))
            values = self._validated({**current, **as_fields(fields)})
            conn.execute(update(self.table).where(self.table.c.id == key).values(**values))
            row = conn.execute(select(self.table).where(self.table.c.id == key)).first()
        return self._entity(row)

    def delete(self, entity_id) -> bool:
        key = self._existing_key(entity_id)
        with self.gateway.transaction() as conn:
            self._delete_dependents(conn, key)
            result = conn.execute(delete(self.table).where(self.table.c.id == key))
            if result.rowcount == 0:
                raise NotFound(KIND_LABELS[self.kind], entity_id)
        return True

    def _existing_key(self, entity_id) -> int:
        try:
            return _to_db_id(entity_id)
        except ValidationRejected as e:
            raise NotFound(KIND_LABELS[self.kind], entity_id) from e

    def _delete_dependents(self, conn, key: int) -> None:
        """Hook for cascades done in the same transaction"""


class DatabaseCategoryRepository(DatabaseRepository):

    def __init__(self, gateway: "DatabaseGateway"):
        super().__init__(gateway, CATEGORIES)

    def _delete_dependents(self, conn, key: int) -> None:
        # Images outlive their category and become uncategorized
        conn.execute(
            update(images_table).where(images_table.c.category_id == key).values(category_id=None)
        )


class DatabaseImageRepository(DatabaseRepository):

    def __init__(self, gateway: "DatabaseGateway"):
        super().__init__(gateway, IMAGES)

    def _delete_dependents(self, conn, key: int) -> None:
        conn.execute(delete(annotations_table).where(annotations_table.c.image_id == key))


class DatabaseAnnotationRepository(DatabaseRepository, AnnotationRepository):

    def __init__(self, gateway: "DatabaseGateway"):
        DatabaseRepository.__init__(self, gateway, ANNOTATIONS)

    def get_by_image_id(self, image_id) -> List:
        try:
            key = _to_db_id(image_id)
        except ValidationRejected:
            return []
        query = self._ordered().where(self.table.c.image_id == key)
        with self.gateway.connect() as conn:
            return [self._entity(row) for row in conn.execute(query)]


class _Guarded:
    """Context manager mapping SQLAlchemy errors onto the storage taxonomy"""

    def __init__(self, factory):
        self._factory = factory
        self._context = None

    def __enter__(self):
        try:
            self._context = self._factory()
            return self._context.__enter__()
        except OperationalError as e:
            raise TransportFailure(f"Database unavailable: {e.orig}") from e

    def __exit__(self, exc_type, exc, tb):
        try:
            self._context.__exit__(exc_type, exc, tb)
        except IntegrityError as e:
            raise ValidationRejected(f"Database rejected write: {e.orig}") from e
        except OperationalError as e:
            raise TransportFailure(f"Database unavailable: {e.orig}") from e
        if isinstance(exc, IntegrityError):
            raise ValidationRejected(f"Database rejected write: {exc.orig}") from exc
        if isinstance(exc, OperationalError):
            raise TransportFailure(f"Database unavailable: {exc.orig}") from exc
        if isinstance(exc, SQLAlchemyError):
            raise TransportFailure(f"Database error: {exc}") from exc
        return False


class DatabaseGateway(PersistenceGateway):
    """
    Gateway over a relational database

    Args:
        url: SQLAlchemy database URL (default: config.DATABASE_URL)
        engine: Existing engine to use instead of creating one
        create_schema: Create missing tables on startup
    """

    name = "database"

    def __init__(
        self,
        url: str = config.DATABASE_URL,
        engine: Optional[Engine] = None,
        create_schema: bool = True,
    ):
        self.engine = engine if engine is not None else self._create_engine(url)
        if create_schema:
            with _Guarded(self.engine.begin) as conn:
                metadata_obj.create_all(conn)
        self._categories = DatabaseCategoryRepository(self)
        self._images = DatabaseImageRepository(self)
        self._annotations = DatabaseAnnotationRepository(self)

    @staticmethod
    def _create_engine(url: str) -> Engine:
        kwargs = {}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every session sees the same in-memory database
            kwargs = {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
        engine = create_engine(url, **kwargs)
        if engine.dialect.name == "sqlite":
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        logger.info("Connected to %s database", engine.dialect.name)
        return engine

    @property
    def categories(self) -> DatabaseCategoryRepository:
        return self._categories

    @property
    def images(self) -> DatabaseImageRepository:
        return self._images

    @property
    def annotations(self) -> DatabaseAnnotationRepository:
        return self._annotations

    def connect(self) -> _Guarded:
        return _Guarded(self.engine.connect)

    def transaction(self) -> _Guarded:
        return _Guarded(self.engine.begin)

    def close(self) -> None:
        self.engine.dispose()
