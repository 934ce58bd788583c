import json
import logging
from typing import Any, Dict, Optional, Set, TypedDict

logger = logging.getLogger(__name__)


class ToolCall(TypedDict):
    id: str
    name: str
    input: Any


class PendingToolCall(TypedDict):
    id: str
    name: str
    raw_input: str


class ToolBuffer:
    """
    Accumulates streamed tool-use arguments per content block index.

    Arguments arrive as JSON text fragments. `try_validate` lets the caller
    surface a call as soon as the text parses, while `finalize` always makes a
    decision at block stop. One buffer belongs to exactly one stream.
    """

    def __init__(self):
        self._pending: Dict[int, PendingToolCall] = {}
        self._emitted: Set[int] = set()

    def clear(self) -> None:
        """Drop all tracking state."""
        self._pending.clear()
        self._emitted.clear()

    def start(self, index: int, tool_id: str, name: str) -> None:
        """Register a tool call at `index`, replacing any stale entry."""
        self._pending[index] = {"id": tool_id, "name": name, "raw_input": ""}
        self._emitted.discard(index)

    def append(self, index: int, chunk: str) -> None:
        pending = self._pending.get(index)
        if pending is None:
            logger.debug("[Tool Buffer] Input for unknown block %s ignored", index)
            return
        pending["raw_input"] += chunk

    def try_validate(self, index: int) -> Optional[ToolCall]:
        """
        Return the call with parsed input if the buffered text is valid JSON.

        The buffer is left untouched so later chunks can retry. Incomplete
        JSON is the normal state while streaming, so this never raises.
        """
        pending = self._pending.get(index)
        if pending is None or not pending["raw_input"]:
            return None
        try:
            parsed = json.loads(pending["raw_input"])
        except ValueError:
            return None
        return {"id": pending["id"], "name": pending["name"], "input": parsed}

    def finalize(self, index: int) -> Optional[ToolCall]:
        """
        Parse the final buffer and remove the entry.

        Unparseable input is kept as {"raw": <text>}; a call that never
        received input finalizes with an empty object.
        """
        pending = self._pending.pop(index, None)
        if pending is None:
            return None

        raw = pending["raw_input"]
        if not raw:
            tool_input: Any = {}
        else:
            try:
                tool_input = json.loads(raw)
            except ValueError:
                logger.warning(
                    "[Tool Buffer] Invalid JSON for tool %s at block stop, keeping raw input",
                    pending["name"],
                )
                tool_input = {"raw": raw}

        return {"id": pending["id"], "name": pending["name"], "input": tool_input}

    def is_emitted(self, index: int) -> bool:
        return index in self._emitted

    def mark_emitted(self, index: int) -> None:
        self._emitted.add(index)

    def discard(self, index: int) -> None:
        """Forget the buffered input of an already emitted call."""
        self._pending.pop(index, None)

    def has_pending(self, index: int) -> bool:
        return index in self._pending
