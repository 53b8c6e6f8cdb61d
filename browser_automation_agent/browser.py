"""
Browser session using CDP (Chrome DevTools Protocol).

Owns exactly one Chrome page. Every operation fails with
BrowserNotStartedError before start() or after close().
"""
import asyncio
import json
import logging
import os
import shutil
import subprocess
import tempfile
from typing import Optional, Dict, Any, List, Tuple

import httpx
import websockets

from .errors import (
    BrowserCommandError,
    BrowserNotStartedError,
    BrowserSessionError,
    NavigationError,
    SelectorTimeoutError,
)
from .models import FormField

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

CHROME_CANDIDATES = [
    '/Applications/Google Chrome.app/Contents/MacOS/Google Chrome',  # macOS
    'google-chrome',  # Linux
    'chromium-browser',  # Linux
    'chromium',  # Linux
    r'C:\Program Files\Google\Chrome\Application\chrome.exe',  # Windows
]

FORM_FIELDS_JS = """
(function() {
    const inputs = Array.from(document.querySelectorAll('input, textarea, select'));
    return inputs.map(el => ({
        tag: el.tagName.toLowerCase(),
        type: el.type || 'text',
        name: el.name || '',
        id: el.id || '',
        placeholder: el.placeholder || '',
        required: !!el.required,
        label: (el.labels && el.labels[0] && el.labels[0].textContent || '').trim()
    }));
})();
"""

# Virtual key codes for keys dispatched by name
KEY_CODES = {
    'Enter': 13,
    'Tab': 9,
    'Escape': 27,
    'Backspace': 8,
    'Delete': 46,
    'Control': 17,
    'Alt': 18,
    'Shift': 16,
    'Meta': 91,
}


def find_chrome(explicit: Optional[str] = None) -> Optional[str]:
    """Return the first usable Chrome/Chromium executable"""
    candidates = [explicit] if explicit else CHROME_CANDIDATES
    for path in candidates:
        if os.path.exists(path):
            return path
        resolved = shutil.which(path)
        if resolved:
            return resolved
    return None


class BrowserSession:
    """A single-page browser controller using CDP"""

    # Seconds between selector lookups while waiting for an element
    poll_interval = 0.1
    # Seconds between attempts to reach Chrome's debugging endpoint
    connect_retry_interval = 1.0

    def __init__(
        self,
        headless: bool = False,
        chrome_path: Optional[str] = None,
        port: int = 0,
        selector_timeout: float = 10.0,
        navigation_wait: float = 2.0,
        type_delay: float = 0.05,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.headless = headless
        self.chrome_path = chrome_path
        self.port = port
        self.selector_timeout = selector_timeout
        self.navigation_wait = navigation_wait
        self.type_delay = type_delay
        self.user_agent = user_agent
        self.chrome_process = None
        self.user_data_dir = None
        self.active_port = None
        self.ws = None
        self.cdp_url = None
        self.session_id = None
        self.target_id = None
        self.message_id = 0
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self.ws is not None and not self._closed

    async def start(self):
        """Start Chrome and connect via CDP"""
        if self._closed:
            raise BrowserNotStartedError("Browser session closed")
        if self.ws is not None:
            return

        chrome_path = find_chrome(self.chrome_path)
        if not chrome_path:
            raise BrowserSessionError("Chrome/Chromium not found. Please install Chrome.")

        self.user_data_dir = tempfile.mkdtemp(prefix='browser_automation_agent_')

        chrome_args = [
            chrome_path,
            f'--remote-debugging-port={self.port}',
            f'--user-data-dir={self.user_data_dir}',
            '--no-first-run',
            '--no-default-browser-check',
            '--disable-extensions',
            '--disable-dev-shm-usage',
            '--disable-setuid-sandbox',
            '--no-sandbox',
        ]

        if self.headless:
            chrome_args.append('--headless=new')

        logger.info(f"Starting Chrome from: {chrome_path}")

        self.chrome_process = subprocess.Popen(
            chrome_args,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL
        )

        # Wait for Chrome to expose the debugging endpoint
        max_retries = 15
        for i in range(max_retries):
            await asyncio.sleep(self.connect_retry_interval)
            try:
                port = self.port or self._read_active_port()
                async with httpx.AsyncClient() as client:
                    response = await client.get(f'http://localhost:{port}/json/version', timeout=3.0)
                    data = response.json()
                    self.cdp_url = data['webSocketDebuggerUrl']
                    self.active_port = port
                    logger.info(f"✓ Connected to Chrome on port {port}")
                    break
            except (httpx.HTTPError, OSError, ValueError, KeyError) as e:
                if i == max_retries - 1:
                    self._terminate_chrome()
                    self._remove_profile()
                    raise BrowserSessionError(
                        f"Failed to connect to Chrome after {max_retries} attempts: {e}"
                    ) from e
                logger.debug(f"Attempt {i+1}/{max_retries}: Waiting for Chrome...")

        try:
            await self._attach_page()
        except (OSError, websockets.WebSocketException, BrowserCommandError) as e:
            await self._abandon_start()
            raise BrowserSessionError(f"Failed to attach to Chrome: {e}") from e
        except BrowserSessionError:
            await self._abandon_start()
            raise

        logger.info("Browser started successfully")

    async def _attach_page(self):
        """Open a fresh page target and attach a flat CDP session to it"""
        self.ws = await websockets.connect(
            self.cdp_url,
            max_size=10 * 1024 * 1024  # 10MB limit
        )

        result = await self._send_command('Target.createTarget', {
            'url': 'about:blank'
        })
        self.target_id = result['targetId']

        result = await self._send_command('Target.attachToTarget', {
            'targetId': self.target_id,
            'flatten': True
        })
        self.session_id = result['sessionId']

        await self._send_command('Page.enable', session_id=self.session_id)
        await self._send_command('DOM.enable', session_id=self.session_id)
        await self._send_command('Runtime.enable', session_id=self.session_id)
        await self._send_command('Network.setUserAgentOverride', {
            'userAgent': self.user_agent
        }, session_id=self.session_id)

    async def _abandon_start(self):
        if self.ws is not None:
            try:
                await self.ws.close()
            except websockets.WebSocketException as e:
                logger.debug(f"Error closing CDP connection: {e}")
            self.ws = None
        self._terminate_chrome()
        self._remove_profile()

    def _require_session(self):
        if self._closed:
            raise BrowserNotStartedError("Browser session closed")
        if self.ws is None:
            raise BrowserNotStartedError()

    async def _send_command(self, method: str, params: Optional[Dict] = None, session_id: Optional[str] = None) -> Any:
        """Send a CDP command and wait for its response"""
        self._require_session()
        self.message_id += 1
        message_id = self.message_id
        message = {
            'id': message_id,
            'method': method,
            'params': params or {}
        }

        if session_id:
            message['sessionId'] = session_id

        try:
            await self.ws.send(json.dumps(message))

            while True:
                response = await self.ws.recv()
                data = json.loads(response)

                if data.get('id') == message_id:
                    if 'error' in data:
                        raise BrowserCommandError(method, data['error'])
                    return data.get('result', {})
        except websockets.ConnectionClosed as e:
            raise BrowserSessionError(f"Browser connection lost during {method}: {e}") from e

    async def _page_command(self, method: str, params: Optional[Dict] = None) -> Any:
        return await self._send_command(method, params, session_id=self.session_id)

    async def _evaluate(self, expression: str) -> Any:
        """Evaluate JavaScript in the page and return its value"""
        result = await self._page_command('Runtime.evaluate', {
            'expression': expression,
            'returnByValue': True
        })
        if 'exceptionDetails' in result:
            details = result['exceptionDetails']
            raise BrowserCommandError('Runtime.evaluate', {
                'message': details.get('exception', {}).get('description') or details.get('text', 'evaluation failed')
            })
        return result.get('result', {}).get('value')

    # ==============================================================
    # ELEMENT LOOKUP
    # ==============================================================

    async def _find_rendered(self, selector: str) -> Optional[Tuple[int, float, float]]:
        """Return (node_id, center_x, center_y) if the selector matches a rendered element"""
        document = await self._page_command('DOM.getDocument', {'depth': 0})
        result = await self._page_command('DOM.querySelector', {
            'nodeId': document['root']['nodeId'],
            'selector': selector
        })
        node_id = result.get('nodeId', 0)
        if not node_id:
            return None

        try:
            box = await self._page_command('DOM.getBoxModel', {'nodeId': node_id})
        except BrowserCommandError:
            # Present in the DOM but not rendered (display: none, detached...)
            return None

        content = box['model']['content']
        xs, ys = content[0::2], content[1::2]
        if max(xs) - min(xs) <= 0 or max(ys) - min(ys) <= 0:
            return None
        return node_id, (min(xs) + max(xs)) / 2, (min(ys) + max(ys)) / 2

    async def wait_for_selector(self, selector: str, timeout: Optional[float] = None) -> Tuple[int, float, float]:
        """
        Wait until a selector resolves to a rendered element.

        Raises:
            SelectorTimeoutError: if nothing matched within the timeout
        """
        self._require_session()
        timeout = self.selector_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            found = await self._find_rendered(selector)
            if found:
                return found
            if loop.time() >= deadline:
                raise SelectorTimeoutError(selector, timeout)
            await asyncio.sleep(self.poll_interval)

    # ==============================================================
    # ACTIONS
    # ==============================================================

    async def navigate(self, url: str):
        """Navigate to a URL"""
        result = await self._page_command('Page.navigate', {'url': url})
        if result.get('errorText'):
            raise NavigationError(url, result['errorText'])
        await asyncio.sleep(self.navigation_wait)  # Wait for page load
        logger.info(f"✓ Navigated to {url}")

    async def click(self, selector: str, timeout: Optional[float] = None):
        """Click the element matching a CSS selector once it is rendered"""
        node_id, x, y = await self.wait_for_selector(selector, timeout)

        try:
            await self._page_command('DOM.scrollIntoViewIfNeeded', {'nodeId': node_id})
            # Coordinates change after scrolling; read them once, no second wait
            scrolled = await self._find_rendered(selector)
            if scrolled:
                node_id, x, y = scrolled
        except BrowserCommandError as e:
            logger.debug(f"Scroll into view failed for {selector!r}: {e}")

        await self._mouse_click(x, y)
        logger.info(f"✓ Clicked {selector!r} at ({x:.0f}, {y:.0f})")

    async def click_at(self, x: float, y: float):
        """Click at viewport coordinates"""
        self._require_session()
        await self._mouse_click(x, y)
        logger.info(f"✓ Clicked at ({x}, {y})")

    async def _mouse_click(self, x: float, y: float):
        for event_type in ('mousePressed', 'mouseReleased'):
            await self._page_command('Input.dispatchMouseEvent', {
                'type': event_type,
                'x': x,
                'y': y,
                'button': 'left',
                'clickCount': 1
            })

    async def type_text(self, selector: str, text: str, timeout: Optional[float] = None):
        """Replace the contents of the field matching a selector with text"""
        try:
            node_id, _, _ = await self.wait_for_selector(selector, timeout)

            await self._page_command('DOM.focus', {'nodeId': node_id})

            # Clear existing text first (select all + delete)
            await self._page_command('Input.dispatchKeyEvent', {
                'type': 'rawKeyDown',
                'key': 'a',
                'code': 'KeyA',
                'windowsVirtualKeyCode': 65,
                'modifiers': 2,  # Control
                'commands': ['selectAll']
            })
            await self._page_command('Input.dispatchKeyEvent', {
                'type': 'keyUp',
                'key': 'a',
                'code': 'KeyA',
                'windowsVirtualKeyCode': 65,
                'modifiers': 2
            })
            await self._dispatch_key_event('rawKeyDown', 'Delete')
            await self._dispatch_key_event('keyUp', 'Delete')

            for char in text:
                await self._page_command('Input.dispatchKeyEvent', {
                    'type': 'char',
                    'text': char
                })
                if self.type_delay:
                    await asyncio.sleep(self.type_delay)

            value = await self._read_value(node_id)
            logger.info(f"✓ Typed '{text}' into {selector!r} (current value: {value or 'unknown'!r})")

        except BrowserSessionError:
            raise
        except Exception as e:
            logger.error(f"Failed to type into selector {selector!r}: {e}")
            raise

    async def _read_value(self, node_id: int) -> Optional[str]:
        try:
            resolved = await self._page_command('DOM.resolveNode', {'nodeId': node_id})
            result = await self._page_command('Runtime.callFunctionOn', {
                'functionDeclaration': 'function() { return this.value !== undefined ? this.value : this.textContent; }',
                'objectId': resolved['object']['objectId'],
                'returnByValue': True
            })
        except (BrowserCommandError, KeyError) as e:
            logger.debug(f"Could not read back field value: {e}")
            return None
        return result.get('result', {}).get('value')

    async def _dispatch_key_event(self, event_type: str, key: str, modifiers: int = 0):
        """Dispatch a keyboard event via CDP"""
        params = {
            'type': event_type,
            'key': key,
            'code': key,
        }
        if key in KEY_CODES:
            params['windowsVirtualKeyCode'] = KEY_CODES[key]
            params['nativeVirtualKeyCode'] = KEY_CODES[key]
        if modifiers:
            params['modifiers'] = modifiers

        await self._page_command('Input.dispatchKeyEvent', params)

    async def get_form_fields(self) -> List[FormField]:
        """Describe every input, textarea and select on the page"""
        raw_fields = await self._evaluate(FORM_FIELDS_JS) or []
        fields = [FormField(**field) for field in raw_fields]
        logger.info(f"📋 Found {len(fields)} form fields")
        return fields

    async def take_screenshot(self) -> str:
        """Take a screenshot and return base64 encoded image"""
        result = await self._page_command('Page.captureScreenshot', {
            'format': 'jpeg',
            'quality': 60,
        })

        return result['data']  # Already base64 encoded

    def _read_active_port(self) -> int:
        """Port Chrome chose for --remote-debugging-port=0 (first line of DevToolsActivePort)"""
        with open(os.path.join(self.user_data_dir, 'DevToolsActivePort')) as f:
            return int(f.readline().strip())

    def _remove_profile(self):
        if self.user_data_dir:
            shutil.rmtree(self.user_data_dir, ignore_errors=True)
            self.user_data_dir = None

    def _terminate_chrome(self):
        if self.chrome_process:
            self.chrome_process.terminate()
            self.chrome_process.wait()
            self.chrome_process = None

    async def close(self):
        """Close browser. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self.ws:
            try:
                await self.ws.close()
            except websockets.WebSocketException as e:
                logger.warning(f"Error closing CDP connection: {e}")
            self.ws = None
        self._terminate_chrome()
        self._remove_profile()
        logger.info("Browser closed")
