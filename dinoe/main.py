"""
dinoe - Main Entry Point
========================

This is the main entry point for the agent. It:
1. Loads configuration
2. Initializes all components (memory, skills, tools, provider, agent)
3. Reads messages from stdin and prints the answers

Streamed answer text goes to stdout as it arrives; logs go to stderr.

Run with:
    python -m dinoe.main

Or after installing:
    dinoe
"""

import asyncio
import sys

from dinoe.errors import ProviderError
from dinoe.utils.config import Config, get_config
from dinoe.utils.logger import Logger, set_default_level

main_logger = Logger("Main")

EXIT_COMMANDS = ("exit", "quit", "/exit", "/quit")
CLEAR_COMMANDS = ("/clear", "/new")
PROMPT = "you> "


class TokenPrinter:
    """Prints streamed text as it arrives and remembers what it printed."""

    def __init__(self):
        self.printed: list[str] = []

    def __call__(self, text: str) -> None:
        self.printed.append(text)
        sys.stdout.write(text)
        sys.stdout.flush()

    def take(self) -> str:
        text = "".join(self.printed)
        self.printed.clear()
        return text


def build_agent(config: Config, on_token=None):
    """Wire memory, skills, tools and the provider into an Agent."""
    from dinoe.agent import Agent
    from dinoe.memory import MarkdownMemory
    from dinoe.providers import create_provider
    from dinoe.skills import SkillLoader
    from dinoe.tools import ToolRegistry, register_builtin_tools

    config.workspace_dir.mkdir(parents=True, exist_ok=True)

    memory = MarkdownMemory(config.workspace_dir)
    registry = register_builtin_tools(
        ToolRegistry(),
        config.workspace_dir,
        memory=memory,
        shell_timeout=config.agent.shell_timeout_seconds,
    )

    return Agent(
        provider=create_provider(config.provider),
        registry=registry,
        workspace_dir=config.workspace_dir,
        config=config.agent,
        memory=memory,
        skills=SkillLoader(config.workspace_dir),
        on_token=on_token,
    )


async def _read_line(prompt: str) -> str | None:
    """Read one line from stdin without blocking the event loop; None on EOF."""
    sys.stdout.write(prompt)
    sys.stdout.flush()
    line = await asyncio.to_thread(sys.stdin.readline)
    if not line:
        return None
    return line.rstrip("\n")


async def main():
    """
    Main async entry point.

    Runs the read-answer loop until EOF or an exit command.
    """
    main_logger.info("Starting dinoe...")

    try:
        config = get_config()
    except ValueError as e:
        main_logger.error("Invalid configuration", e)
        sys.exit(1)

    set_default_level(config.log_level)
    printer = TokenPrinter() if config.provider.stream_enabled else None
    agent = build_agent(config, on_token=printer)

    main_logger.info(f"Workspace: {config.workspace_dir}")

    try:
        while True:
            line = await _read_line(PROMPT)
            if line is None:
                break

            message = line.strip()
            if not message:
                continue
            if message.lower() in EXIT_COMMANDS:
                break
            if message.lower() in CLEAR_COMMANDS:
                agent.clear_conversation()
                print("(conversation cleared)")
                continue

            try:
                answer = await agent.run(message)
            except ProviderError as e:
                main_logger.error("Provider request failed", e)
                if printer is not None:
                    printer.take()
                print(f"\n[error] {e}")
                continue

            streamed = printer.take() if printer is not None else ""
            if answer not in streamed:
                if streamed:
                    print()
                print(answer)
            else:
                print()
    finally:
        await agent.provider.aclose()
        main_logger.info("Goodbye")


def run():
    """
    Synchronous entry point.

    This is called when running with `dinoe` command.
    """
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
