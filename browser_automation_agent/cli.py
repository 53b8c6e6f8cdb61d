"""
Command-line entry point.

    browser-automation-agent run "Fill the form at https://example.com"
    browser-automation-agent serve --port 3000
"""
import argparse
import asyncio
import logging
import sys
from typing import Optional

from .agent import BrowserAutomationAgent
from .config import AgentSettings, SelectorPolicy, load_settings
from .errors import BrowserAutomationError

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(message)s'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="browser-automation-agent",
        description="Drive a browser with an LLM agent."
    )
    parser.add_argument("--env-file", help="Path to a .env file")
    parser.add_argument("--log-level", help="Logging level (default: INFO)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run one task in the terminal")
    run_parser.add_argument("task", nargs="?", help="Task description (prompted for when omitted)")
    run_parser.add_argument("--max-turns", type=int, help="Turn ceiling for the agent loop")
    run_parser.add_argument("--headless", action="store_true", default=None, help="Hide the browser window")
    run_parser.add_argument("--input-timeout", type=float, help="Seconds to wait for operator input")
    run_parser.add_argument(
        "--selector-policy",
        choices=[p.value for p in SelectorPolicy],
        help="What to do when every fallback selector fails"
    )

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP task API")
    serve_parser.add_argument("--host", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Port")

    return parser


def settings_from_args(args: argparse.Namespace) -> AgentSettings:
    return load_settings(
        env_file=args.env_file,
        log_level=args.log_level,
        max_turns=getattr(args, "max_turns", None),
        headless=getattr(args, "headless", None),
        human_input_timeout=getattr(args, "input_timeout", None),
        selector_policy=getattr(args, "selector_policy", None),
        host=getattr(args, "host", None),
        port=getattr(args, "port", None),
    )


async def run_task(task: Optional[str], settings: AgentSettings) -> int:
    """Run a single task and print the outcome. Returns a process exit code."""
    print('🤖 Browser Automation Agent CLI')
    print('================================\n')

    agent = BrowserAutomationAgent(settings=settings)

    try:
        await agent.initialize()
    except BrowserAutomationError as e:
        print(f'❌ Failed to initialize browser: {e}')
        await agent.close()
        return 1
    print('✅ Browser initialized successfully!\n')

    try:
        if not task:
            print('Enter your automation task (e.g., "Fill the form at https://example.com"):')
            task = await agent.human_input.ask("Task")

        print(f'\n🚀 Starting task: {task}\n')
        result = await agent.execute_task(task)

        if result.succeeded:
            print('\n✅ Task completed successfully!')
            print(f'Final response: {result.final_output}')
            return 0

        print(f'❌ The task exceeded the maximum number of turns ({result.max_turns}).')
        print('💡 This usually happens with very complex forms. Try breaking the task into smaller parts.')
        print('📝 You can also try submitting the form manually after the agent has filled the available fields.')
        return 2

    except BrowserAutomationError as e:
        logger.error(f"Task failed: {e}")
        print(f'❌ Error executing task: {e}')
        return 1
    finally:
        await agent.close()


def serve(settings: AgentSettings):
    import uvicorn

    from .server import app

    print(f'🚀 Browser Automation Agent server running on port {settings.port}')
    print(f'📖 API documentation available at http://localhost:{settings.port}/docs')
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = settings_from_args(args)
    configure_logging(settings.log_level)

    if args.command == "serve":
        serve(settings)
        return 0

    try:
        return asyncio.run(run_task(args.task, settings))
    except KeyboardInterrupt:
        print('\n👋 Shutting down gracefully...')
        return 130


if __name__ == '__main__':
    sys.exit(main())
