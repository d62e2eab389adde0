"""Rich console dashboard combining telemetry and the voice session."""

import logging
from typing import Optional, Sequence, Tuple

from pubsub import pub
from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..models.events import TelemetryUpdate, VoiceEvent
from ..models.telemetry import ConnectionState, HistoryPoint, TelemetryRecord
from ..models.voice import AmplitudeFrame, VoiceSessionState, silent_frame

logger = logging.getLogger(__name__)


SPARK_CHARS = " ▁▂▃▄▅▆▇█"
BAR_CHARS = " ▁▂▃▄▅▆▇█"

CONNECTION_STYLES = {
    ConnectionState.OPEN: ("● Connected", "bold green"),
    ConnectionState.CONNECTING: ("◌ Connecting...", "bold yellow"),
    ConnectionState.CLOSED: ("○ Disconnected", "bold red"),
}

VOICE_STATUS = {
    VoiceSessionState.IDLE: ("🎤 Press space to speak", "dim"),
    VoiceSessionState.LISTENING: ("🎤 Listening...", "bold red"),
    VoiceSessionState.PROCESSING: ("⚙️  Processing...", "bold yellow"),
    VoiceSessionState.SPEAKING: ("🔊 Speaking...", "bold blue"),
}


def sparkline(values: Sequence[float], maximum: float = 100.0) -> str:
    """Render percentages as a one-line block chart."""
    if not values:
        return ""
    steps = len(SPARK_CHARS) - 1
    chars = []
    for value in values:
        level = int(round(max(0.0, min(value, maximum)) / maximum * steps))
        chars.append(SPARK_CHARS[level])
    return "".join(chars)


def amplitude_bars(frame: AmplitudeFrame) -> str:
    """Render an amplitude frame, one column per sample."""
    steps = len(BAR_CHARS) - 1
    return "".join(BAR_CHARS[int(round(max(0.0, min(v, 1.0)) * steps))] for v in frame)


class DashboardScreen:
    """Keeps the latest telemetry/voice state from pub/sub and renders it."""

    def __init__(self,
                 telemetry_topic: str = "telemetry.update",
                 voice_topic: str = "voice.event",
                 frame_size: int = 50,
                 voice_enabled: bool = True):
        self.telemetry_topic = telemetry_topic
        self.voice_topic = voice_topic
        self.voice_enabled = voice_enabled

        self.connection_state = ConnectionState.CONNECTING
        self.record: Optional[TelemetryRecord] = None
        self.history: Tuple[HistoryPoint, ...] = ()

        self.voice_state = VoiceSessionState.IDLE
        self.frame: AmplitudeFrame = silent_frame(frame_size)
        self.transcript: Optional[str] = None
        self.reply: Optional[str] = None

        pub.subscribe(self.on_telemetry_update, telemetry_topic)
        pub.subscribe(self.on_voice_event, voice_topic)
        logger.info(f"DashboardScreen subscribed to {telemetry_topic} and {voice_topic}")

    def on_telemetry_update(self, update: TelemetryUpdate) -> None:
        self.connection_state = update.state
        self.history = update.history
        if update.record is not None:
            self.record = update.record

    def on_voice_event(self, event: VoiceEvent) -> None:
        self.voice_state = event.state
        if event.event_type == "frame" and event.frame is not None:
            self.frame = event.frame
        elif event.event_type == "state_changed" and event.state is VoiceSessionState.LISTENING:
            self.transcript = None
            self.reply = None
        elif event.event_type == "transcript":
            self.transcript = event.transcript
        elif event.event_type == "reply":
            self.reply = event.reply

    def shutdown(self) -> None:
        try:
            pub.unsubscribe(self.on_telemetry_update, self.telemetry_topic)
            pub.unsubscribe(self.on_voice_event, self.voice_topic)
        except Exception as e:
            logger.warning(f"Error during unsubscribe: {e}")

    def render(self) -> Group:
        """Build the full dashboard renderable."""
        parts = [self._render_header(), self._render_metrics(), self._render_history()]
        if self.voice_enabled:
            parts.append(self._render_voice())
        return Group(*parts)

    def _render_header(self) -> Text:
        label, style = CONNECTION_STYLES[self.connection_state]
        header = Text("JARVIS System Monitor  ", style="bold blue")
        header.append(label, style=style)
        return header

    def _render_metrics(self):
        if self.record is None:
            message = "Waiting for metrics..." if self.connection_state != ConnectionState.CLOSED \
                else "Failed to load metrics"
            return Panel(Text(message, style="dim"), title="Metrics")

        r = self.record
        table = Table.grid(expand=True, padding=(0, 2))
        for _ in range(4):
            table.add_column(justify="center")
        table.add_row(
            Text("CPU Usage", style="dim"),
            Text("Memory Used", style="dim"),
            Text("Memory Usage", style="dim"),
            Text("Memory Available", style="dim"),
        )
        table.add_row(
            Text(f"{r.cpu_usage:.1f}%", style="bold"),
            Text(f"{r.memory_used_gb:.1f} GB", style="bold"),
            Text(f"{r.memory_usage_percent:.1f}%", style="bold"),
            Text(f"{r.memory_available_gb:.1f} GB", style="bold"),
        )
        table.add_row(
            Text(f"{r.cpu_count} cores", style="dim"),
            Text(f"of {r.memory_total_gb:.1f} GB", style="dim"),
            Text(f"[{'█' * int(r.memory_usage_percent / 5):<20}]", style="blue"),
            Text("Free memory", style="dim"),
        )
        timestamp = r.timestamp.astimezone() if r.timestamp.tzinfo else r.timestamp
        subtitle = f"Last updated: {timestamp.strftime('%H:%M:%S')}"
        return Panel(table, title="Metrics", subtitle=subtitle)

    def _render_history(self) -> Panel:
        cpu = sparkline([p.cpu for p in self.history])
        memory = sparkline([p.memory for p in self.history])
        body = Table.grid(padding=(0, 1))
        body.add_column(style="dim")
        body.add_column()
        body.add_row("CPU", Text(cpu, style="green"))
        body.add_row("MEM", Text(memory, style="blue"))
        if self.history:
            body.add_row("", Text(f"{self.history[0].time} - {self.history[-1].time}", style="dim"))
        return Panel(body, title=f"History ({len(self.history)} points)")

    def _render_voice(self) -> Panel:
        label, style = VOICE_STATUS[self.voice_state]
        lines = [
            Text(amplitude_bars(self.frame),
                 style="blue" if self.voice_state is VoiceSessionState.LISTENING else "dim blue"),
            Text(label, style=style),
        ]
        if self.transcript:
            lines.append(Text(f"You said: {self.transcript}"))
        if self.reply:
            lines.append(Text(f"JARVIS: {self.reply}", style="cyan"))
        return Panel(Group(*lines), title="Voice Interface")
