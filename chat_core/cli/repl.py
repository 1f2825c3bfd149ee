"""命令行交互入口。

每轮读取一行输入：输入 exit（大小写不敏感，忽略首尾空白）结束会话并以 0 退出；
其它任何输入（包括空行）都作为一轮对话发送。
配置、分词器、客户端、输入、请求、流读取中的任何错误都会终止进程，
打印诊断信息并以非零状态退出，不做单轮恢复。
"""

import argparse
import asyncio
import sys
from typing import Callable, List, Optional

from rich.console import Console
from rich.text import Text

from chat_core.agents.chat_engine import ChatConfig, ChatEngine
from chat_core.cli.spinner import ThinkingIndicator
from chat_core.config.settings import load_settings
from chat_core.context.tokens import get_encoding
from chat_core.domain.conversation import InMemoryConversationStore
from chat_core.domain.exceptions import BusinessError, InputError
from chat_core.infrastructure.logging.logger import logger, logging_ready, setup_logger
from chat_core.providers import create_provider


EXIT_COMMAND = "exit"


def is_exit_command(text: str) -> bool:
    return text.strip().lower() == EXIT_COMMAND


class ChatRepl:
    """REPL：读取输入、显示等待指示器、实时回显回答。"""

    def __init__(
        self,
        engine: ChatEngine,
        console: Optional[Console] = None,
        read_line: Optional[Callable[[], str]] = None,
        spinner_interval: float = 0.1,
    ):
        self._engine = engine
        self._console = console or Console()
        self._read_line = read_line or self._prompt
        self._spinner_interval = spinner_interval

    def print_welcome(self) -> None:
        self._console.clear()
        self._console.print("Welcome to the AI Chat!", style="bold underline cyan")
        self._console.print("Type 'exit' to quit the program.", style="italic blue")
        self._console.print()

    async def read_user_input(self) -> str:
        # 输入期间没有其它任务运行，直接在事件循环线程上读取
        try:
            return self._read_line()
        except (EOFError, OSError) as e:
            raise InputError(code="INPUT_ERROR", message=f"Failed to get user input: {e!r}") from e

    async def run(self) -> int:
        self.print_welcome()
        while True:
            user_input = await self.read_user_input()
            if is_exit_command(user_input):
                self._console.print("Goodbye!", style="bold yellow")
                return 0
            await self.run_turn(user_input)

    async def run_turn(self, user_input: str) -> None:
        indicator = ThinkingIndicator(self._console, interval=self._spinner_interval)
        try:
            async for event in self._engine.run_turn_stream(user_input):
                if event.kind == "request":
                    indicator.start()
                elif event.kind == "response":
                    await indicator.stop()
                    self._console.print("AI: ", style="bold magenta", end="")
                elif event.kind == "delta":
                    self._echo(event.delta_text or "")
                elif event.kind == "final":
                    self._console.print()
        finally:
            await indicator.stop()

    def _echo(self, text: str) -> None:
        self._console.print(text, style="white", end="", markup=False, highlight=False, soft_wrap=True)
        self._console.file.flush()

    def _prompt(self) -> str:
        return self._console.input("[bold green]You[/bold green]: ")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="groq-chat", description="Interactive chat with Groq-hosted models.")
    parser.add_argument(
        "--config",
        default=None,
        help="path to the YAML config file (default: $CHAT_CONFIG_FILE or ./config.yaml)",
    )
    return parser


async def run_session(config_file: Optional[str], console: Console) -> int:
    settings = load_settings(config_file)
    setup_logger(settings)
    # 编码表加载失败应在任何交互之前终止
    get_encoding()
    provider = create_provider(settings)
    try:
        store = InMemoryConversationStore()
        engine = ChatEngine(store, provider, ChatConfig.from_settings(settings))
        repl = ChatRepl(engine, console=console, spinner_interval=settings.spinner_interval)
        return await repl.run()
    finally:
        await provider.aclose()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    console = Console()
    err_console = Console(stderr=True)
    try:
        return asyncio.run(run_session(args.config, console))
    except BusinessError as e:
        if logging_ready():
            logger.error(
                "Chat session aborted",
                extra={"extra": {"code": e.code, "error": e.message, **e.extra}},
            )
        err_console.print(Text.assemble(("Error: ", "bold red"), e.message))
        return 1
    except KeyboardInterrupt:
        err_console.print(Text("Interrupted", style="bold red"))
        return 130


if __name__ == "__main__":
    sys.exit(main())
