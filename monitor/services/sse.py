"""
Incremental decoder for OpenAI-style ``text/event-stream`` completions.

Chunks may split anywhere, including inside a UTF-8 sequence or inside
a JSON payload.  Only complete lines are decoded; a partial line stays
buffered until its newline arrives.  A complete ``data:`` line that is
not valid JSON is logged and dropped.
"""
import codecs
import json
import logging
from typing import Iterable, Iterator

logger = logging.getLogger(__name__)


class SSEDecoder:
    def __init__(self):
        self._utf8 = codecs.getincrementaldecoder('utf-8')(errors='replace')
        self._buffer = ''
        self.done = False

    def feed(self, chunk: bytes) -> list[str]:
        """Consume ``chunk`` and return the content deltas it completed."""
        if self.done:
            return []
        self._buffer += self._utf8.decode(chunk)
        deltas = []
        while '\n' in self._buffer:
            line, self._buffer = self._buffer.split('\n', 1)
            if line.endswith('\r'):
                line = line[:-1]
            if not line.strip() or line.startswith(':'):
                continue
            if not line.startswith('data: '):
                continue
            payload = line[6:].strip()
            if payload == '[DONE]':
                self.done = True
                break
            try:
                event = json.loads(payload)
            except ValueError:
                logger.warning('dropping malformed SSE event: %.200s', payload)
                continue
            content = _delta_content(event)
            if content:
                deltas.append(content)
        return deltas

    def flush(self) -> list[str]:
        """Decode whatever is left once the upstream has closed."""
        if self.done or not self._buffer:
            return []
        tail = self._buffer
        self._buffer = ''
        deltas = []
        for raw in tail.split('\n'):
            line = raw.rstrip('\r')
            if not line.startswith('data: '):
                continue
            payload = line[6:].strip()
            if payload == '[DONE]':
                self.done = True
                break
            try:
                content = _delta_content(json.loads(payload))
            except ValueError:
                continue
            if content:
                deltas.append(content)
        return deltas


def _delta_content(event) -> str:
    try:
        return event['choices'][0]['delta'].get('content') or ''
    except (KeyError, IndexError, TypeError, AttributeError):
        return ''


def iter_deltas(chunks: Iterable[bytes]) -> Iterator[str]:
    decoder = SSEDecoder()
    for chunk in chunks:
        yield from decoder.feed(chunk)
        if decoder.done:
            return
    yield from decoder.flush()


def collect_reply(chunks: Iterable[bytes]) -> str:
    return ''.join(iter_deltas(chunks))
