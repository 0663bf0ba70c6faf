import asyncio
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator

from .config import READ_SIZE
from .http.decoder import ChunkDecoder
from .http.encoder import ChunkEncoder
from .http.model import DecodedChunk, TDecoded
from .transport import AsyncTransport, Transport
from .utils.logging import event

# --
# Pumps that connect a payload source or sink to a transport. Each pump
# owns one direction of a connection, so a writer and a reader can run
# on separate threads or tasks without sharing anything.


def writeChunks(transport: Transport, payloads: Iterable[bytes]) -> int:
	"""Writes each non-empty payload as one chunk, then the terminal chunk.
	Returns the number of chunks written."""
	session = ChunkEncoder.open(transport)
	with session:
		for payload in payloads:
			# Empty payloads would end the body, so we skip them
			if payload:
				session.emit(payload)
	event("chunked.sent", session.state.chunks, Written=session.state.written)
	return session.state.chunks


async def awriteChunks(
	transport: AsyncTransport, payloads: AsyncIterable[bytes] | Iterable[bytes]
) -> int:
	session = ChunkEncoder.openAsync(transport)
	async with session:
		if isinstance(payloads, AsyncIterable):
			async for payload in payloads:
				if payload:
					await session.emit(payload)
		else:
			for payload in payloads:
				if payload:
					await session.emit(payload)
	event("chunked.sent", session.state.chunks, Written=session.state.written)
	return session.state.chunks


def readChunks(
	transport: Transport,
	decoder: ChunkDecoder | None = None,
	*,
	size: int = READ_SIZE,
	initial: bytes = b"",
) -> Iterator[TDecoded]:
	"""Reads from the transport until the end of the chunked body, yielding
	the decoded chunks and then `EndOfBody`. The `initial` bytes are the
	part of the body that was already read along with the head. A transport
	that closes before the end raises `TruncatedStream`."""
	decoder = ChunkDecoder() if decoder is None else decoder
	yield from decoder.feed(initial)
	while not decoder.isDone:
		data = transport.read(size)
		if not data:
			yield from decoder.close()
			break
		yield from decoder.feed(data)
	event("chunked.received", decoder.state.chunks, Consumed=decoder.state.consumed)


async def areadChunks(
	transport: AsyncTransport,
	decoder: ChunkDecoder | None = None,
	*,
	size: int = READ_SIZE,
	initial: bytes = b"",
	timeout: float | None = None,
) -> AsyncIterator[TDecoded]:
	"""Like `readChunks`, where `timeout` bounds each individual read and
	raises `asyncio.TimeoutError` when exceeded."""
	decoder = ChunkDecoder() if decoder is None else decoder
	for atom in decoder.feed(initial):
		yield atom
	while not decoder.isDone:
		data = await asyncio.wait_for(transport.read(size), timeout=timeout)
		if not data:
			for atom in decoder.close():
				yield atom
			break
		for atom in decoder.feed(data):
			yield atom
	event("chunked.received", decoder.state.chunks, Consumed=decoder.state.consumed)


def payloads(atoms: Iterable[TDecoded]) -> Iterator[bytes]:
	"""Filters decoded atoms down to the chunk payloads."""
	for atom in atoms:
		if isinstance(atom, DecodedChunk):
			yield atom.data


# EOF
