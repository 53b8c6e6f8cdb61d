"""
LangChain tools the planner can call.

Tools are created via a factory so the browser session and the human input
channel are injected through closures. Single-selector actions turn page-level
failures (BrowserActionError) into a short text result. Session faults, human
input errors and exhausted fallback lists under the strict policy are not
caught here and end the task.
"""
import asyncio
import json
import logging

from langchain_core.tools import tool
from pydantic import BaseModel, ConfigDict, Field

from .config import SelectorPolicy
from .errors import BrowserActionError
from .selector_fallback import (
    TWEET_COMPOSE_BUTTON,
    TWEET_SUBMIT_BUTTON,
    TWEET_TEXT_AREA,
    TWITTER_HOME_URL,
)

logger = logging.getLogger(__name__)


# ==============================================================
# ARGUMENT SCHEMAS
# ==============================================================

class ToolArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")


class NoArgs(ToolArgs):
    pass


class NavigateToUrlArgs(ToolArgs):
    url: str = Field(min_length=1, description="The URL to navigate to")


class ClickElementArgs(ToolArgs):
    selector: str = Field(min_length=1, description="CSS selector of the element to click")


class ClickCoordinatesArgs(ToolArgs):
    x: float = Field(description="X coordinate")
    y: float = Field(description="Y coordinate")


class TypeTextArgs(ToolArgs):
    selector: str = Field(min_length=1, description="CSS selector of the input field")
    text: str = Field(description="Text to type")


class AskUserForInputArgs(ToolArgs):
    prompt: str = Field(min_length=1, description="The prompt to show to the user")
    field_name: str = Field(description="Name of the field being requested")


class PostTweetArgs(ToolArgs):
    content: str = Field(min_length=1, description="The content of the tweet to post")


def create_browser_tools(
    browser,
    human_input,
    selector_policy: SelectorPolicy = SelectorPolicy.SOFT,
    compose_delay: float = 1.0,
):
    """
    Create all tools with browser and operator context injected via closure.

    Args:
        browser: BrowserSession instance (or anything with the same coroutines)
        human_input: HumanInputChannel used by ask_user_for_input
        selector_policy: What to do when a selector fallback list is exhausted
        compose_delay: Seconds to wait for the tweet composer to open

    Returns:
        List of 10 LangChain tools
    """

    # ==============================================================
    # TOOL 1: SCREENSHOT
    # ==============================================================

    @tool("take_screenshot", args_schema=NoArgs)
    async def take_screenshot() -> str:
        """Takes a screenshot of the current page to confirm it is loaded and ready for interaction."""
        try:
            screenshot_b64 = await browser.take_screenshot()
        except BrowserActionError as e:
            logger.error(f"Screenshot failed: {e}")
            return f"❌ Screenshot error: {e}"
        logger.debug(f"Screenshot captured (size: {len(screenshot_b64)} chars)")
        return "Screenshot taken successfully. Page is visible and ready for interaction."

    # ==============================================================
    # TOOL 2: NAVIGATE
    # ==============================================================

    @tool("navigate_to_url", args_schema=NavigateToUrlArgs)
    async def navigate_to_url(url: str) -> str:
        """Navigates the browser to a specific URL."""
        try:
            await browser.navigate(url)
        except BrowserActionError as e:
            logger.error(f"Navigate failed: {e}")
            return f"❌ Navigation error: {e}"
        return f"Navigated to {url}"

    # ==============================================================
    # TOOL 3: CLICK BY SELECTOR
    # ==============================================================

    @tool("click_element", args_schema=ClickElementArgs)
    async def click_element(selector: str) -> str:
        """Clicks on an element using a CSS selector. Waits a bounded time for the element to appear."""
        try:
            await browser.click(selector)
        except BrowserActionError as e:
            logger.error(f"Click failed: {e}")
            return f"❌ Could not click element with selector {selector}: {e}"
        return f"Clicked element with selector: {selector}"

    # ==============================================================
    # TOOL 4: CLICK BY COORDINATES
    # ==============================================================

    @tool("click_coordinates", args_schema=ClickCoordinatesArgs)
    async def click_coordinates(x: float, y: float) -> str:
        """Clicks on specific coordinates on the screen."""
        try:
            await browser.click_at(x, y)
        except BrowserActionError as e:
            logger.error(f"Coordinate click failed: {e}")
            return f"❌ Could not click at ({x:g}, {y:g}): {e}"
        return f"Clicked at coordinates ({x:g}, {y:g})"

    # ==============================================================
    # TOOL 5: TYPE
    # ==============================================================

    @tool("type_text", args_schema=TypeTextArgs)
    async def type_text(selector: str, text: str) -> str:
        """Types text into an input field, replacing what was there."""
        try:
            await browser.type_text(selector, text)
        except BrowserActionError as e:
            logger.error(f"Input failed: {e}")
            return f"❌ Could not type into {selector}: {e}. Try an alternative selector."
        return f'Typed "{text}" into {selector}'

    # ==============================================================
    # TOOL 6: READ FORM FIELDS
    # ==============================================================

    @tool("get_form_fields", args_schema=NoArgs)
    async def get_form_fields() -> str:
        """Gets all form fields (inputs, textareas, selects) on the current page as JSON."""
        try:
            fields = await browser.get_form_fields()
        except BrowserActionError as e:
            logger.error(f"Reading form fields failed: {e}")
            return f"❌ Could not read form fields: {e}"
        return json.dumps([field.model_dump() for field in fields], indent=2)

    # ==============================================================
    # TOOL 7: ASK USER
    # ==============================================================

    @tool("ask_user_for_input", args_schema=AskUserForInputArgs)
    async def ask_user_for_input(prompt: str, field_name: str) -> str:
        """
        Asks the user for input via the terminal and waits for the response.

        Ask for ONE piece of information at a time, e.g. "Please enter your first name".
        """
        logger.info(f"Asking operator for '{field_name}'")
        return await human_input.ask(prompt)

    # ==============================================================
    # TOOL 8: OPEN TWITTER
    # ==============================================================

    @tool("open_twitter", args_schema=NoArgs)
    async def open_twitter() -> str:
        """Opens Twitter/X.com in the browser."""
        try:
            await browser.navigate(TWITTER_HOME_URL)
        except BrowserActionError as e:
            logger.error(f"Opening Twitter failed: {e}")
            return f"❌ Navigation error: {e}"
        return "Navigated to Twitter/X.com"

    # ==============================================================
    # TOOL 9: WRITE TWEET
    # ==============================================================

    @tool("post_tweet", args_schema=PostTweetArgs)
    async def post_tweet(content: str) -> str:
        """Opens the tweet composer and enters the tweet content. Use click_tweet_button afterwards to post."""
        clicked = await TWEET_COMPOSE_BUTTON.first_match(browser.click, selector_policy)
        if clicked is None:
            return "Could not find tweet compose button. Please make sure you are logged in to Twitter."

        if compose_delay:
            await asyncio.sleep(compose_delay)

        async def type_content(selector: str):
            await browser.type_text(selector, content)

        typed = await TWEET_TEXT_AREA.first_match(type_content, selector_policy)
        if typed is None:
            return "Could not find tweet text area. Please try manually."

        return f'Tweet content "{content}" has been entered. You can now click the Tweet button to post.'

    # ==============================================================
    # TOOL 10: POST TWEET
    # ==============================================================

    @tool("click_tweet_button", args_schema=NoArgs)
    async def click_tweet_button() -> str:
        """Clicks the final Tweet button to post the tweet."""
        clicked = await TWEET_SUBMIT_BUTTON.first_match(browser.click, selector_policy)
        if clicked is None:
            return "Could not find the Tweet button to post. Please click it manually."
        return "Tweet posted successfully!"

    return [
        take_screenshot,
        navigate_to_url,
        click_element,
        click_coordinates,
        type_text,
        get_form_fields,
        ask_user_for_input,
        open_twitter,
        post_tweet,
        click_tweet_button,
    ]
