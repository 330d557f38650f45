from typing import Iterable, Iterator
from uuid import uuid4

from .errors import ERR, SourceNotFoundError
from .models import Source, SourceType


def source_header(source: Source) -> str:
    return f"--- {source.type.value.upper()}: {source.name} ---"

def aggregate_sources(sources: Iterable[Source]) -> str:
    """
    Merge sources into one text blob, in the order they were added:
    a header line per source, then its content, blocks separated by a blank line.
    No truncation here; the prompt builder applies the size bound.
    """
    blocks = []
    for s in sources:
        blocks.append(f"{source_header(s)}\n{s.content}")
    return "\n\n".join(blocks)


class SourceList:
    """Ordered, insertion-significant collection. Unique on id only, never deduplicated by content."""

    def __init__(self):
        self._items: list[Source] = []

    def add(self, type: SourceType, name: str, content: str) -> Source:
        src = Source(id=uuid4().hex, type=SourceType(type), name=name, content=content)
        self._items.append(src)
        return src

    def remove(self, source_id: str) -> Source:
        for i, s in enumerate(self._items):
            if s.id == source_id:
                return self._items.pop(i)
        raise SourceNotFoundError(ERR["source_not_found"], detail=f"no source with id {source_id}")

    def clear(self) -> None:
        self._items.clear()

    def has_urls(self) -> bool:
        return any(s.type is SourceType.URL for s in self._items)

    def first_file_name(self) -> str | None:
        for s in self._items:
            if s.type is SourceType.FILE:
                return s.name
        return None

    def __iter__(self) -> Iterator[Source]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)
