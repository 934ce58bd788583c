"""
Rich printers for displaying Bedrock chat responses in the terminal.
"""
from typing import Dict, Any, AsyncIterator, List, Optional
from rich.console import Console
from rich.markdown import Markdown
from rich.syntax import Syntax
from rich.panel import Panel
from rich.live import Live
from rich.console import Group
from rich.text import Text
import json

console = Console()


def _metadata_panel(meta: Dict[str, Any]) -> Panel:
    metadata_display = Syntax(
        json.dumps(meta, indent=2, default=str),
        "json",
        theme="lightbulb",
        background_color="default",
    )
    return Panel(metadata_display, title="[bold]Metadata[/bold]", border_style="dim")


def _tool_calls_panel(tool_calls: List[Dict[str, Any]]) -> Panel:
    lines = [
        f"{tc.get('name')}({json.dumps(tc.get('input'), default=str)})  [dim]{tc.get('call_id')}[/dim]"
        for tc in tool_calls
    ]
    return Panel("\n".join(lines), title="[bold]Tool Calls[/bold]", border_style="yellow")


class RichStreamPrinter:
    """
    Displays events from `BedrockChatClient.astream` with a live panel.

    Attributes:
        title: Title for the display panel
        show_metadata: Whether to show metadata at the end
        show_thinking: Whether to show reasoning text above the answer
        code_theme: Theme for code blocks
        refresh_rate: Refresh rate for Live display
    """

    def __init__(
        self,
        title: str = "Streaming Response",
        show_metadata: bool = True,
        show_thinking: bool = True,
        code_theme: str = "coffee",
        inline_code_theme: str = "monokai",
        refresh_rate: int = 30,
        border_style: str = "blue"
    ):
        self.title = title
        self.show_metadata = show_metadata
        self.show_thinking = show_thinking
        self.code_theme = code_theme
        self.inline_code_theme = inline_code_theme
        self.refresh_rate = refresh_rate
        self.border_style = border_style
        self._full_text = ""
        self._thinking = ""
        self._tool_calls: List[Dict[str, Any]] = []
        self._final_event: Optional[Dict[str, Any]] = None

    async def print_stream(
        self,
        event_stream: AsyncIterator[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """
        Process and display streaming events.

        Args:
            event_stream: Async iterator yielding event dictionaries

        Returns:
            The final 'done' event, or an empty dict if the stream had none
        """
        self._full_text = ""
        self._thinking = ""
        self._tool_calls = []
        self._final_event = None

        with Live(Panel("", border_style=self.border_style), refresh_per_second=self.refresh_rate, console=console) as live:
            async for event in event_stream:
                self._process_event(event)
                self._update_display(live, is_final=event["type"] == "done")

        return self._final_event or {}

    def _process_event(self, event: Dict[str, Any]) -> None:
        match event["type"]:
            case "token":
                self._full_text += event["text"]
            case "thinking":
                self._thinking += event["text"]
            case "tool_call":
                self._tool_calls.append(event["tool_call"])
            case "done":
                self._final_event = event

    def _update_display(self, live: Live, is_final: bool = False) -> None:
        title = "[bold]Final Response[/bold]" if is_final else f"[bold]{self.title}[/bold]"
        live.update(
            Panel(
                self._build_content(is_final),
                title=title,
                border_style="green" if is_final else self.border_style,
                padding=(1, 2)
            )
        )

    def _build_content(self, is_final: bool) -> Any:
        items: List[Any] = []
        if self.show_thinking and self._thinking.strip():
            items.append(Text(self._thinking, style="dim italic"))
        if self._full_text.strip():
            items.append(Markdown(
                self._full_text,
                code_theme=self.code_theme,
                inline_code_theme=self.inline_code_theme
            ))
        if self._tool_calls:
            items.append(_tool_calls_panel(self._tool_calls))
        if is_final and self.show_metadata and self._final_event and self._final_event.get("meta"):
            items.append(_metadata_panel(self._final_event["meta"]))

        if not items:
            return Text("(waiting for response...)", style="dim italic")
        return Group(*items)

    def get_full_text(self) -> str:
        return self._full_text

    def get_final_event(self) -> Optional[Dict[str, Any]]:
        return self._final_event


class RichPrinter:
    """
    Displays a complete response from `BedrockChatClient.chat`.
    """

    def __init__(
        self,
        title: str = "Response",
        show_metadata: bool = True,
        show_thinking: bool = False,
        code_theme: str = "coffee",
        inline_code_theme: str = "monokai",
        border_style: str = "green"
    ):
        self.title = title
        self.show_metadata = show_metadata
        self.show_thinking = show_thinking
        self.code_theme = code_theme
        self.inline_code_theme = inline_code_theme
        self.border_style = border_style
        self._response: Optional[Dict[str, Any]] = None

    def print_chat(self, response: Dict[str, Any]) -> Dict[str, Any]:
        """
        Display a chat response.

        Args:
            response: Response dictionary from BedrockChatClient.chat()

        Returns:
            The same response dictionary for chaining
        """
        self._response = response
        title = f"[bold]{self.title}[/bold]"
        model = response.get("meta", {}).get("model")
        if model:
            title += f" [dim]({model})[/dim]"

        console.print(
            Panel(
                self._build_content(response),
                title=title,
                border_style=self.border_style,
                padding=(1, 2)
            )
        )
        return response

    def _build_content(self, response: Dict[str, Any]) -> Any:
        text = response.get("text", "")
        items: List[Any] = []

        if self.show_thinking and response.get("thinking"):
            items.append(Text(response["thinking"], style="dim italic"))
        if text.strip():
            items.append(Markdown(text, code_theme=self.code_theme, inline_code_theme=self.inline_code_theme))
        if response.get("tool_calls"):
            items.append(_tool_calls_panel(response["tool_calls"]))
        if not items:
            items.append(Text("(empty response)", style="dim italic"))
        if self.show_metadata and response.get("meta"):
            items.append(_metadata_panel(response["meta"]))

        return Group(*items)

    def get_response(self) -> Optional[Dict[str, Any]]:
        """Get the last printed response."""
        return self._response
