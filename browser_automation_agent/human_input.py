"""
Line-based prompt/response channel to the human operator.

``ask`` is the one place the agent loop waits on a person. Lines are read on a
daemon thread so the event loop stays responsive and a configured timeout can
fire. Without a timeout an unattended run waits forever.

A read that outlives a timed-out question is kept and answers the next
question, so a line typed late is never lost. Only one read is outstanding per
channel, and agents sharing the terminal share ``terminal_channel()``.
"""
import asyncio
import logging
import threading
from typing import Callable, Optional

from .errors import HumanInputError, HumanInputTimeoutError

logger = logging.getLogger(__name__)


class HumanInputChannel:
    """Ask the operator for a non-empty answer on the terminal"""

    def __init__(
        self,
        input_func: Callable[[str], str] = input,
        output_func: Callable[[str], None] = print,
        timeout: Optional[float] = None,
    ):
        """
        Args:
            input_func: Reads one line, given the input marker (default: input)
            output_func: Shows a line to the operator (default: print)
            timeout: Seconds to wait for a valid answer; None waits forever
        """
        self._input = input_func
        self._output = output_func
        self.timeout = timeout
        # Re-prompts for the most recent question
        self.reprompt_count = 0
        self._pending: Optional[asyncio.Future] = None
        self._lock = asyncio.Lock()

    @property
    def timeout(self) -> Optional[float]:
        return self._timeout

    @timeout.setter
    def timeout(self, value: Optional[float]):
        if value is not None and value <= 0:
            raise ValueError("timeout must be positive or None")
        self._timeout = value

    async def ask(self, prompt: str) -> str:
        """
        Show a prompt and block until the operator enters non-blank text.

        Concurrent questions on one channel are asked one at a time.

        Raises:
            HumanInputTimeoutError: no valid answer within the timeout
            HumanInputError: input stream closed
        """
        async with self._lock:
            self.reprompt_count = 0
            self._output(f"\n📝 {prompt}")
            logger.info(f"Waiting for operator input: {prompt}")

            if self.timeout is None:
                return await self._collect()

            try:
                return await asyncio.wait_for(self._collect(), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.error(f"No operator input after {self.timeout:g}s")
                raise HumanInputTimeoutError(prompt, self.timeout) from None

    async def _collect(self) -> str:
        while True:
            pending = self._next_line("> ")
            try:
                # shield: a timeout must not cancel the read itself
                line = await asyncio.shield(pending)
            except HumanInputError:
                self._pending = None
                raise
            self._pending = None

            answer = line.strip()
            if answer:
                self._output(f"✅ Received: {answer}")
                return answer
            self.reprompt_count += 1
            self._output("⚠️  Please enter a valid response.")

    def _next_line(self, marker: str) -> "asyncio.Future[str]":
        """The outstanding read if there is one, otherwise a new one"""
        loop = asyncio.get_running_loop()
        if self._pending is None or self._pending.get_loop() is not loop:
            self._pending = self._read_line(marker)
        return self._pending

    def _read_line(self, marker: str) -> "asyncio.Future[str]":
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def deliver(setter, value):
            if not future.done():
                setter(value)

        def post(setter, value):
            try:
                loop.call_soon_threadsafe(deliver, setter, value)
            except RuntimeError:
                # The loop that asked has already finished
                logger.debug("Dropping operator input read after its event loop closed")

        def reader():
            try:
                line = self._input(marker)
            except EOFError:
                post(future.set_exception, HumanInputError("Input stream closed while waiting for an answer"))
            except Exception as e:
                post(future.set_exception, HumanInputError(str(e)))
            else:
                post(future.set_result, line)

        threading.Thread(target=reader, name="human-input", daemon=True).start()
        return future


_terminal_channel: Optional[HumanInputChannel] = None


def terminal_channel(timeout: Optional[float] = None) -> HumanInputChannel:
    """The process-wide channel on stdin/stdout, with its timeout updated"""
    global _terminal_channel
    if _terminal_channel is None:
        _terminal_channel = HumanInputChannel()
    _terminal_channel.timeout = timeout
    return _terminal_channel
