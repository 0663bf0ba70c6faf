import asyncio
import threading

import pytest

from chunked.http.decoder import ChunkDecoder
from chunked.http.grammar import TERMINAL, formatChunk
from chunked.http.model import DecodedChunk

# --
# A loopback relay in the spirit of the server the client talks to: `PUT`
# stores the chunks of a chunked body, `GET` streams them back chunked,
# a few bytes at a time so that reads don't align with the chunks.


class Relay(threading.Thread):
	def __init__(self) -> None:
		super().__init__(daemon=True)
		self.files: dict[str, list[bytes]] = {}
		self.port: int = 0
		self.ready = threading.Event()
		self.loop: asyncio.AbstractEventLoop | None = None
		self.stopping: asyncio.Event | None = None

	def run(self) -> None:
		asyncio.run(self.serve())

	async def serve(self) -> None:
		self.loop = asyncio.get_running_loop()
		self.stopping = asyncio.Event()
		server = await asyncio.start_server(self.handle, "127.0.0.1", 0)
		self.port = server.sockets[0].getsockname()[1]
		self.ready.set()
		async with server:
			await self.stopping.wait()

	def stop(self) -> None:
		if self.loop and self.stopping:
			self.loop.call_soon_threadsafe(self.stopping.set)
		self.join(5)

	async def handle(
		self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
	) -> None:
		try:
			head = await reader.readuntil(b"\r\n\r\n")
			method, path = head.decode("ascii").split(" ")[:2]
			if method == "PUT":
				chunks: list[bytes] = []
				decoder = ChunkDecoder()
				while not decoder.isDone:
					data = await reader.read(1024)
					atoms = list(decoder.feed(data)) if data else decoder.close()
					chunks += [_.data for _ in atoms if isinstance(_, DecodedChunk)]
				self.files[path] = chunks
				writer.write(
					b"HTTP/1.1 201 Created\r\nContent-Length: 0\r\nConnection: close\r\n\r\n"
				)
			elif path == "/raw":
				writer.write(b"HTTP/1.1 200 OK\r\nContent-Length: 10\r\n\r\nplain body")
			elif path == "/truncated":
				writer.write(
					b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\n5\r\nabc"
				)
			elif path in self.files:
				data = (
					b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\n"
					+ b"".join(formatChunk(_) for _ in self.files[path])
					+ TERMINAL
				)
				for i in range(0, len(data), 3):
					writer.write(data[i : i + 3])
					await writer.drain()
			else:
				writer.write(b"HTTP/1.1 404 Not Found\r\nContent-Length: 7\r\n\r\nmissing")
			await writer.drain()
		finally:
			writer.close()


@pytest.fixture
def relay():
	server = Relay()
	server.start()
	assert server.ready.wait(5)
	yield server
	server.stop()


# EOF
