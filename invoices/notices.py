"""User-facing notices: transient toasts and persistent banners."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

STORE_UNAVAILABLE_TITLE = "Invoice store unavailable"


class NoticeVariant(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class Notice:
    title: str
    description: str
    variant: NoticeVariant = NoticeVariant.DEFAULT
    persistent: bool = False

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "variant": self.variant.value,
            "persistent": self.persistent,
        }


@dataclass
class Notifier:
    """Collects notices raised while handling one user action."""

    notices: list[Notice] = field(default_factory=list)

    def info(self, title: str, description: str) -> Notice:
        return self._push(Notice(title, description))

    def error(self, title: str, description: str) -> Notice:
        return self._push(Notice(title, description, NoticeVariant.DESTRUCTIVE))

    def banner(self, title: str, description: str) -> Notice:
        """Persistent notice for failures that retrying cannot fix."""
        notice = Notice(title, description, NoticeVariant.DESTRUCTIVE, persistent=True)
        if notice not in self.notices:
            self.notices.append(notice)
        return notice

    @property
    def banners(self) -> list[Notice]:
        return [n for n in self.notices if n.persistent]

    def drain(self) -> list[Notice]:
        notices, self.notices = self.notices, []
        return notices

    def _push(self, notice: Notice) -> Notice:
        self.notices.append(notice)
        return notice

