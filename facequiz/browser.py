"""
Playwright host glue for the face quiz page.

Implements the round surfaces (presentation, candidates, outcome) and an
image loader on top of a Playwright async Page. Selectors are based on the
quiz markup:

- image:   div.image with an inline background-image style
- answers: .answer buttons; spent ones carry .has-answered
- outcome: the right answer gets .is-right or .palette-success

Everything here is best-effort glue. The round loop treats a failure in
these methods as a lost round, not a fatal error.
"""

import logging
import re
from typing import Optional

from facequiz.errors import ImageLoadError
from facequiz.surfaces import CandidateOption

logger = logging.getLogger(__name__)

IMAGE_SELECTOR = '.image[style*="background-image"]'
ANSWER_SELECTOR = ".answer"
ANSWERED_CLASS = "has-answered"
OUTCOME_SELECTOR = ".answer.is-right, .answer.palette-success"

BACKGROUND_URL_PATTERN = re.compile(r"""url\(\s*["']?([^"')]+)["']?\s*\)""")

BINDING_NAME = "__facequizPresentationChanged"

# Installs (or reinstalls) a MutationObserver on the image's style attribute.
# Retries every 100ms until the image container exists.
OBSERVER_SCRIPT = """
(binding) => {
  if (window.__facequizObserver) {
    window.__facequizObserver.disconnect();
  }
  const attach = () => {
    const el = document.querySelector('.image-container .image') ||
               document.querySelector('.image[style*="background-image"]');
    if (!el) {
      window.__facequizRetry = setTimeout(attach, 100);
      return;
    }
    const observer = new MutationObserver((mutations) => {
      for (const m of mutations) {
        if (m.type === 'attributes' && m.attributeName === 'style') {
          window[binding](el.getAttribute('style') || '');
          break;
        }
      }
    });
    observer.observe(el, { attributes: true, attributeFilter: ['style'] });
    window.__facequizObserver = observer;
    window[binding](el.getAttribute('style') || '');
  };
  attach();
}
"""

DISCONNECT_SCRIPT = """
() => {
  clearTimeout(window.__facequizRetry);
  if (window.__facequizObserver) {
    window.__facequizObserver.disconnect();
    window.__facequizObserver = null;
  }
}
"""


def extract_background_url(style: Optional[str]) -> Optional[str]:
    """
    Pull the image locator out of an inline style.

    Args:
        style: e.g. 'background-image: url("https://.../questions/12/picture")'

    Returns:
        The URL, or None if the style has no url(...)
    """
    if not style:
        return None
    match = BACKGROUND_URL_PATTERN.search(style)
    return match.group(1) if match else None


class PlaywrightImageLoader:
    """Fetch image bytes through the page's request context (shares cookies)."""

    def __init__(self, page):
        self.page = page

    async def load(self, source: str) -> bytes:
        from playwright.async_api import Error as PlaywrightError

        try:
            response = await self.page.request.get(source)
            if not response.ok:
                raise ImageLoadError(source, f"HTTP {response.status}")
            return await response.body()
        except PlaywrightError as e:
            raise ImageLoadError(source, str(e)) from e


class PlaywrightQuizPage:
    """QuizHost backed by a live Playwright page."""

    def __init__(self, page):
        self.page = page
        self._callback = None
        self._bound = False

    async def current_image_source(self) -> Optional[str]:
        element = await self.page.query_selector(IMAGE_SELECTOR)
        if element is None:
            return None
        return extract_background_url(await element.get_attribute("style"))

    async def current_candidates(self) -> list[CandidateOption]:
        options = []
        for element in await self.page.query_selector_all(ANSWER_SELECTOR):
            name = ((await element.text_content()) or "").strip()
            classes = ((await element.get_attribute("class")) or "").split()
            options.append(
                CandidateOption(
                    name=name,
                    submit=element.click,
                    already_answered=ANSWERED_CLASS in classes,
                )
            )
        return options

    async def confirmed_name(self) -> Optional[str]:
        element = await self.page.query_selector(OUTCOME_SELECTOR)
        if element is None:
            return None
        return ((await element.text_content()) or "").strip() or None

    async def on_presentation_changed(self, callback):
        """Push style changes of the image element to callback(locator)."""
        if not self._bound:
            await self.page.expose_function(BINDING_NAME, self._dispatch)
            self._bound = True
        self._callback = callback
        await self.page.evaluate(OBSERVER_SCRIPT, BINDING_NAME)
        logger.info("Presentation observer installed")
        return self._unsubscribe

    def _dispatch(self, style: str) -> None:
        source = extract_background_url(style)
        if source and self._callback is not None:
            self._callback(source)

    async def _unsubscribe(self) -> None:
        self._callback = None
        await self.page.evaluate(DISCONNECT_SCRIPT)
