"""UI message stream: typed segments written by one producer, drained as SSE.

Segment kinds: start, text-start, text-delta, text-end, tool-result, finish.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger("vivaah.stream")

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "x-vercel-ai-ui-message-stream": "v1",
}
HITS_MARKER_START = "__VENDOR_HITS_JSON__"
HITS_MARKER_END = "__END_VENDOR_HITS_JSON__"

_CLOSED = object()


class UIMessageStreamWriter:
    """Append-only writer; keeps at most one text block open at a time."""

    def __init__(self, inline_payload: bool = False) -> None:
        self.inline_payload = inline_payload
        self.segments: List[Dict[str, Any]] = []
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._text_id: Optional[str] = None
        self._started = False
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def write(self, segment: Dict[str, Any]) -> None:
        if self._finished:
            logger.debug("Dropping segment after finish: %s", segment.get("type"))
            return
        self.segments.append(segment)
        self._queue.put_nowait(segment)

    def start(self) -> None:
        if not self._started:
            self._started = True
            self.write({"type": "start"})

    def text_delta(self, delta: str) -> None:
        """Append text to the open block, opening one if needed."""
        if not delta:
            return
        if self._text_id is None:
            self._text_id = f"text-{uuid.uuid4().hex[:12]}"
            self.write({"type": "text-start", "id": self._text_id})
        self.write({"type": "text-delta", "id": self._text_id, "delta": delta})

    def end_text(self) -> None:
        if self._text_id is not None:
            self.write({"type": "text-end", "id": self._text_id})
            self._text_id = None

    def write_text(self, text: str) -> None:
        """Write a complete text block (start, delta, end)."""
        self.text_delta(text)
        self.end_text()

    def tool_result(self, tool: str, result: Any) -> None:
        """Emit a structured payload; also inline it between markers in debug mode."""
        self.write(
            {
                "type": "tool-result",
                "toolCallId": f"call-{uuid.uuid4().hex[:12]}",
                "tool": tool,
                "result": result,
            }
        )
        if self.inline_payload:
            self.write_text(f"\n{HITS_MARKER_START}{json.dumps(result, ensure_ascii=False, default=str)}{HITS_MARKER_END}\n")

    def finish(self) -> None:
        """Close any open text block, emit finish, and release the reader."""
        if self._finished:
            return
        self.start()
        self.end_text()
        self.write({"type": "finish"})
        self._finished = True
        self._queue.put_nowait(_CLOSED)

    async def drain(self) -> AsyncIterator[Dict[str, Any]]:
        while True:
            segment = await self._queue.get()
            if segment is _CLOSED:
                return
            yield segment

    def text(self) -> str:
        """Concatenated text deltas written so far."""
        return "".join(segment["delta"] for segment in self.segments if segment["type"] == "text-delta")

    def tool_results(self) -> List[Dict[str, Any]]:
        return [segment for segment in self.segments if segment["type"] == "tool-result"]


def encode_sse(segment: Dict[str, Any]) -> str:
    return f"data: {json.dumps(segment, ensure_ascii=False, default=str)}\n\n"


async def stream_segments(
    execute: Callable[[UIMessageStreamWriter], Awaitable[None]],
    writer: UIMessageStreamWriter,
) -> AsyncIterator[str]:
    """Purpose: Run a producer against a writer and yield its segments as SSE lines.
    Inputs/Outputs: Inputs are the producer coroutine function and its writer; yields
        "data: ..." lines followed by "data: [DONE]".
    Side Effects / State: Schedules the producer as a task.
    Dependencies: asyncio tasks; UIMessageStreamWriter.drain.
    Failure Modes: Producer exceptions are logged and the stream is still finished.
    If Removed: The chat route cannot stream.
    Testing Notes: Closing the generator early cancels the producer task.
    """
    async def _run() -> None:
        try:
            await execute(writer)
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001 - the stream must always terminate
            logger.exception("Stream producer failed")
            writer.write_text("Sorry, something went wrong while preparing your answer.")
        finally:
            writer.finish()

    task = asyncio.create_task(_run())
    try:
        async for segment in writer.drain():
            yield encode_sse(segment)
        yield "data: [DONE]\n\n"
    finally:
        # Client went away: abandon in-flight collaborator calls for this request.
        if not task.done():
            task.cancel()
