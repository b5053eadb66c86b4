from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID, uuid4


@dataclass(frozen=True)
class Headline:
    """
    One news item as shown to readers.

    `id` is stable across rewrites: a rewritten headline keeps the id, url and
    published_at of the item it came from and only swaps the title.
    """
    title: str
    url: str
    published_at: datetime
    id: UUID = field(default_factory=uuid4)

    def with_title(self, title: str) -> "Headline":
        return dataclasses.replace(self, title=title)
