"""
Host-facing interfaces.

The round loop never touches a page directly. A host (the Playwright glue
in browser.py, or a fake in tests) supplies these capabilities:

- PresentationSource: which image is showing, and a change notification
- CandidateSurface: the answer buttons still open in this round
- OutcomeSurface: the name revealed as correct after a guess
- ImageLoader: raw bytes for an image locator
- KnowledgeStore: load/save of the serialized knowledge maps

Surface methods may be plain or async; callers go through resolve().
"""

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol, Union


@dataclass(frozen=True)
class CandidateOption:
    """One answer button: its label, how to click it, and whether it is spent."""

    name: str
    submit: Callable[[], Any]
    already_answered: bool = False


PresentationCallback = Callable[[str], Union[None, Awaitable[None]]]


class PresentationSource(Protocol):
    def current_image_source(self) -> Optional[str]:
        ...

    def on_presentation_changed(self, callback: PresentationCallback) -> Callable[[], Any]:
        """Subscribe to locator changes. Returns an unsubscribe callable."""
        ...


class CandidateSurface(Protocol):
    def current_candidates(self) -> list[CandidateOption]:
        ...


class OutcomeSurface(Protocol):
    def confirmed_name(self) -> Optional[str]:
        ...


class QuizHost(PresentationSource, CandidateSurface, OutcomeSurface, Protocol):
    """A page that exposes all three round surfaces."""


class ImageLoader(Protocol):
    async def load(self, source: str) -> bytes:
        ...


class KnowledgeStore(Protocol):
    def load(self) -> Optional[dict]:
        ...

    def save(self, data: dict) -> None:
        ...

    def clear(self) -> None:
        ...


async def resolve(value):
    """Await value if the host handed back an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


def open_candidates(options: list[CandidateOption]) -> list[CandidateOption]:
    """Drop buttons that were already answered this round."""
    return [option for option in options if not option.already_answered]
