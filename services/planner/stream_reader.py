"""Incremental reader for streamed assistant replies."""

from __future__ import annotations

import codecs
from typing import AsyncIterable, Callable, Union

from models.planner_errors import StreamInterruptedError

Chunk = Union[bytes, str]


class MessageStreamReader:
	"""Decode a chunked byte stream into text, reporting progress per chunk.

	The reply body has no framing: concatenating the decoded chunks gives the
	full text. Reading always starts from scratch; a broken stream is never
	resumed.
	"""

	def __init__(self, encoding: str = "utf-8") -> None:
		self.encoding = encoding

	async def read_all(self, chunks: AsyncIterable[Chunk], on_chunk: Callable[[str], None]) -> str:
		"""Consume ``chunks`` and return the full text.

		``on_chunk`` receives the accumulated text after every chunk that adds
		characters. A failure part way raises :class:`StreamInterruptedError`
		holding the text accumulated so far.
		"""
		decoder = codecs.getincrementaldecoder(self.encoding)(errors="replace")
		accumulated = ""
		try:
			async for chunk in chunks:
				text = chunk if isinstance(chunk, str) else decoder.decode(chunk)
				if not text:
					continue
				accumulated += text
				on_chunk(accumulated)
			tail = decoder.decode(b"", final=True)
			if tail:
				accumulated += tail
				on_chunk(accumulated)
		except Exception as exc:
			raise StreamInterruptedError(accumulated, exc) from exc
		return accumulated
