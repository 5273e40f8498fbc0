"""Shared fakes for round, session, and hashing tests."""

import io
from functools import partial

import pytest

from facequiz.errors import ImageLoadError
from facequiz.surfaces import CandidateOption


# ---------------------------------------------------------------------------
# Host fakes
# ---------------------------------------------------------------------------

class FakeHost:
    """In-memory quiz page implementing all three round surfaces.

    Clicking an answer marks it answered and, if reveal_on_submit is set,
    reveals the right answer the way the quiz does.
    """

    def __init__(self, source=None, names=(), answer=None, reveal_on_submit=True):
        self.source = source
        self.names = list(names)
        self.answer = answer
        self.reveal_on_submit = reveal_on_submit
        self.revealed = None
        self.answered = set()
        self.clicks = []
        self.callbacks = []

    def current_image_source(self):
        return self.source

    def current_candidates(self):
        return [
            CandidateOption(name, partial(self.click, name), name in self.answered)
            for name in self.names
        ]

    def click(self, name):
        self.clicks.append(name)
        self.answered.add(name)
        if self.reveal_on_submit:
            self.revealed = self.answer

    def confirmed_name(self):
        return self.revealed

    def on_presentation_changed(self, callback):
        self.callbacks.append(callback)
        return lambda: self.callbacks.remove(callback)

    def show(self, source, names, answer):
        """Advance the quiz to a new image and notify subscribers."""
        self.source = source
        self.names = list(names)
        self.answer = answer
        self.revealed = None
        self.answered = set()
        for callback in list(self.callbacks):
            callback(source)


class FakeLoader:
    """ImageLoader serving bytes from a dict; unknown sources fail."""

    def __init__(self, images=None):
        self.images = dict(images or {})
        self.calls = []

    async def load(self, source):
        self.calls.append(source)
        if source not in self.images:
            raise ImageLoadError(source, "HTTP 403")
        return self.images[source]


class FirstChoice:
    """Deterministic stand-in for the random module: always picks the first."""

    def choice(self, seq):
        return list(seq)[0]


def png_bytes(color, size=(12, 12)):
    """Encode a solid-color PNG."""
    from PIL import Image

    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def question_url(question_id):
    return f"https://quiz.example.com/api/questions/{question_id}/picture"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def memory_store():
    from facequiz.persistence import MemoryKnowledgeStore
    return MemoryKnowledgeStore()


@pytest.fixture
def knowledge(memory_store):
    from facequiz.knowledge import KnowledgeBase
    return KnowledgeBase(memory_store)


@pytest.fixture
def hasher():
    from facequiz.hasher import IdentityHasher
    return IdentityHasher(FakeLoader())


@pytest.fixture
def host():
    return FakeHost()
