"""Entity classes and the metadata used to map them to tables."""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Tuple, Type


@dataclass
class Post:
    """A post belonging to a blog."""
    id: Optional[int] = None
    blog_id: Optional[int] = None
    title: Optional[str] = None
    content: Optional[str] = None


@dataclass
class Blog:
    """A blog with its metadata and, when included, its posts."""
    id: Optional[int] = None
    name: Optional[str] = None
    author: Optional[str] = None
    created_at: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    rating: int = 0
    posts: List[Post] = field(default_factory=list)


@dataclass(frozen=True)
class Relation:
    """A one-to-many relation from a parent entity to a child collection."""
    target: str
    foreign_key: str


@dataclass(frozen=True)
class EntityType:
    """Mapping between an entity class and its table."""
    name: str
    table: str
    cls: Type
    columns: Tuple[str, ...]
    primary_key: str = "id"
    relations: Dict[str, Relation] = field(default_factory=dict)

    def has_column(self, name: str) -> bool:
        return name in self.columns

    def from_row(self, row, prefix: str = "") -> Any:
        """Build an entity from a sqlite3.Row, optionally reading prefixed aliases."""
        return self.cls(**{col: row[prefix + col] for col in self.columns})

    def values(self, entity) -> Dict[str, Any]:
        """Column values of an entity, in column order."""
        return {col: getattr(entity, col) for col in self.columns}

    def key_of(self, entity) -> Any:
        return getattr(entity, self.primary_key)


def _columns(cls: Type, exclude: Tuple[str, ...] = ()) -> Tuple[str, ...]:
    return tuple(f.name for f in fields(cls) if f.name not in exclude)


BLOG = EntityType(
    name="blog",
    table="blogs",
    cls=Blog,
    columns=_columns(Blog, exclude=("posts",)),
    relations={"posts": Relation(target="post", foreign_key="blog_id")},
)

POST = EntityType(
    name="post",
    table="posts",
    cls=Post,
    columns=_columns(Post),
)

ENTITY_TYPES: Dict[str, EntityType] = {
    BLOG.name: BLOG,
    POST.name: POST,
}

_BY_CLASS: Dict[Type, EntityType] = {et.cls: et for et in ENTITY_TYPES.values()}


def get_entity_type(name: str) -> EntityType:
    """Look up entity metadata by name."""
    try:
        return ENTITY_TYPES[name]
    except KeyError:
        raise ValueError(f"Unknown entity type: {name}") from None


def entity_type_of(entity) -> EntityType:
    """Look up entity metadata for an entity instance."""
    try:
        return _BY_CLASS[type(entity)]
    except KeyError:
        raise ValueError(f"Not a mapped entity: {type(entity).__name__}") from None
