"""TUI Dashboard following a command's live output on every host."""

from __future__ import annotations

import asyncio

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.message import Message
from textual.reactive import reactive
from textual.widgets import Footer, Header, Label, RichLog, Static
from textual.worker import Worker

from .config import Config
from .executor import Executor, Mode, NodeStatus
from .stream import follow


STATUS_ICONS = {
    NodeStatus.PENDING: ("", "dim"),
    NodeStatus.CONNECTING: ("", "yellow"),
    NodeStatus.RUNNING: ("", "yellow"),
    NodeStatus.SUCCESS: ("", "green"),
    NodeStatus.FAILED: ("", "red"),
}


def _widget_id(host: str) -> str:
    """Textual ids only allow letters, digits, underscores and hyphens."""
    return "".join(c if c.isalnum() or c in "_-" else "_" for c in host)


class HostPanel(Static):
    """A panel displaying output for a single host."""

    status: reactive[NodeStatus] = reactive(NodeStatus.PENDING)

    def __init__(self, host: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.host = host
        self._key = _widget_id(host)

    def compose(self) -> ComposeResult:
        yield Label(self._get_header(), id=f"header-{self._key}")
        yield RichLog(
            id=f"log-{self._key}",
            highlight=True,
            markup=True,
            wrap=True,
            auto_scroll=True,
        )

    def _get_header(self) -> str:
        icon, color = STATUS_ICONS.get(self.status, ("?", "white"))
        return f"[{color}]{icon}[/] [{color}][bold]{escape(self.host)}[/bold] {self.status.value}[/]"

    def watch_status(self, status: NodeStatus) -> None:
        """Update header when status changes."""
        if not self.is_mounted:
            return
        header = self.query_one(f"#header-{self._key}", Label)
        header.update(self._get_header())

    def append_output(self, line: str, is_stderr: bool = False) -> None:
        """Append a line of output to this panel."""
        log = self.query_one(f"#log-{self._key}", RichLog)
        if is_stderr:
            log.write(f"[red]{escape(line)}[/red]")
        else:
            log.write(escape(line))

    def append_error(self, message: str) -> None:
        log = self.query_one(f"#log-{self._key}", RichLog)
        log.write(f"[bold red]ERROR: {escape(message)}[/bold red]")


class StatusBar(Static):
    """Bottom status bar showing overall progress."""

    completed: reactive[int] = reactive(0)
    failed: reactive[int] = reactive(0)
    total: reactive[int] = reactive(0)
    running: reactive[bool] = reactive(True)

    def render(self) -> str:
        state = "Running..." if self.running else "Complete"
        return (
            f"{self.completed}/{self.total} hosts done, {self.failed} failed"
            f" | {state} | q: terminate and quit"
        )


class HostOutput(Message):
    """Message for host output."""

    def __init__(self, host: str, line: str, is_stderr: bool) -> None:
        super().__init__()
        self.host = host
        self.line = line
        self.is_stderr = is_stderr


class HostStatusChange(Message):
    """Message for host status change."""

    def __init__(self, host: str, status: NodeStatus) -> None:
        super().__init__()
        self.host = host
        self.status = status


class Dashboard(App):
    """Main TUI Dashboard application."""

    CSS = """
    Screen {
        layout: grid;
        grid-size: 2;
        grid-gutter: 1;
    }

    HostPanel {
        border: solid $primary;
        height: 100%;
        min-height: 10;
    }

    HostPanel Label {
        dock: top;
        padding: 0 1;
        background: $surface;
    }

    HostPanel RichLog {
        height: 1fr;
        padding: 0 1;
    }

    StatusBar {
        dock: bottom;
        height: 1;
        background: $surface;
        padding: 0 1;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("escape", "quit", "Quit"),
    ]

    def __init__(self, hosts: list[str], command: str, config: Config, **kwargs) -> None:
        super().__init__(**kwargs)
        self.config = config
        self.panels: dict[str, HostPanel] = {}
        self.executor = Executor(
            hosts,
            command,
            config,
            mode=Mode.STREAM,
            gzip=config.gzip,
            on_status=self._on_status,
        )
        self._worker: Worker | None = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)

        for host in dict.fromkeys(self.executor.hosts):
            panel = HostPanel(host, id=f"panel-{_widget_id(host)}")
            self.panels[host] = panel
            yield panel

        yield StatusBar(id="status-bar")
        yield Footer()

    def on_mount(self) -> None:
        """Start execution when the app mounts."""
        status_bar = self.query_one("#status-bar", StatusBar)
        status_bar.total = len(self.panels)
        self._worker = self.run_worker(self._run_execution(), exclusive=True)

    async def _run_execution(self) -> None:
        """Run the executor, follow its streams, then show failures."""
        await asyncio.gather(
            self.executor.start(),
            follow(self.executor, self._on_output),
        )
        for host, message in self.executor.errors.items():
            if host in self.panels:
                self.panels[host].append_error(message)

    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        """Handle worker completion."""
        if event.worker == self._worker and event.state == event.worker.state.SUCCESS:
            status_bar = self.query_one("#status-bar", StatusBar)
            status_bar.running = False

    def _on_output(self, host: str, line: str, is_stderr: bool) -> None:
        self.post_message(HostOutput(host, line, is_stderr))

    def _on_status(self, host: str, status: NodeStatus) -> None:
        self.post_message(HostStatusChange(host, status))

    def on_host_output(self, message: HostOutput) -> None:
        """Handle HostOutput message in main thread."""
        if message.host in self.panels:
            self.panels[message.host].append_output(message.line, message.is_stderr)

    def on_host_status_change(self, message: HostStatusChange) -> None:
        """Handle HostStatusChange message in main thread."""
        if message.host in self.panels:
            self.panels[message.host].status = message.status

        if message.status in (NodeStatus.SUCCESS, NodeStatus.FAILED):
            status_bar = self.query_one("#status-bar", StatusBar)
            status_bar.completed += 1
            if message.status is NodeStatus.FAILED:
                status_bar.failed += 1

    async def action_quit(self) -> None:
        """Terminate remote commands and quit the application."""
        self.executor.close_pipe()
        if self._worker and self._worker.is_running:
            self._worker.cancel()
        self.exit()
