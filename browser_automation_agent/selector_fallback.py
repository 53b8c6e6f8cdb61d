"""
Ordered selector fallback lists for page structures that shift over time.

Each logical action (e.g. "open the tweet composer") owns a fixed list of
candidate CSS selectors tried first-match. The lists are maintained by hand
and can go stale when a site changes its markup.
"""
import logging
from typing import Awaitable, Callable, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator

from .config import SelectorPolicy
from .errors import BrowserActionError, SelectorsExhaustedError

logger = logging.getLogger(__name__)


class SelectorFallback(BaseModel):
    """A named, ordered list of candidate selectors for one action"""
    model_config = ConfigDict(frozen=True)

    action: str
    selectors: Tuple[str, ...]

    @field_validator("selectors")
    @classmethod
    def _not_empty(cls, value):
        if not value:
            raise ValueError("a fallback list needs at least one selector")
        return value

    async def first_match(
        self,
        attempt: Callable[[str], Awaitable[object]],
        policy: SelectorPolicy = SelectorPolicy.SOFT,
    ) -> Optional[str]:
        """
        Run ``attempt`` on each selector in order and stop at the first success.

        Only BrowserActionError moves on to the next candidate. Session faults
        propagate immediately.

        Returns:
            The selector that worked, or None if all failed under SOFT policy

        Raises:
            SelectorsExhaustedError: all candidates failed under STRICT policy
        """
        for selector in self.selectors:
            try:
                await attempt(selector)
            except BrowserActionError as e:
                logger.debug(f"[{self.action}] selector {selector!r} failed: {e}")
                continue
            logger.info(f"[{self.action}] matched selector {selector!r}")
            return selector

        logger.warning(f"[{self.action}] all {len(self.selectors)} selectors failed")
        if policy == SelectorPolicy.STRICT:
            raise SelectorsExhaustedError(self.action, self.selectors)
        return None


# ==============================================================
# X / TWITTER
# ==============================================================

TWEET_COMPOSE_BUTTON = SelectorFallback(
    action="open tweet composer",
    selectors=(
        '[data-testid="SideNav_NewTweet_Button"]',
        '[aria-label="Tweet"]',
        '[data-testid="tweetButtonInline"]',
        'a[href="/compose/tweet"]',
        '[role="button"][aria-label="Tweet"]',
    ),
)

TWEET_TEXT_AREA = SelectorFallback(
    action="type tweet content",
    selectors=(
        '[data-testid="tweetTextarea_0"]',
        '[role="textbox"][aria-label*="Tweet"]',
        '[role="textbox"][placeholder*="What"]',
        '.public-DraftEditor-content',
        '[contenteditable="true"][role="textbox"]',
    ),
)

TWEET_SUBMIT_BUTTON = SelectorFallback(
    action="post tweet",
    selectors=(
        '[data-testid="tweetButtonInline"]',
        '[data-testid="tweetButton"]',
        '[role="button"][aria-label="Tweet"]',
        'button[data-testid="tweetButtonInline"]',
    ),
)

TWITTER_HOME_URL = "https://x.com"
