import asyncio
from contextlib import aclosing
from collections.abc import AsyncIterable, AsyncIterator, Iterable
from typing import TypeAlias, Union

from .config import PORT, READ_SIZE, TIMEOUT
from .http.head import HTTPResponseHead, ResponseHeadParser, formatRequestHead
from .http.model import BodyControl, DecodedChunk, TruncatedStream
from .stream import areadChunks, awriteChunks, writeChunks
from .transport import AsyncTransport, SocketTransport, StreamTransport
from .utils.logging import debug, event, exception, logged, warning

# --
# A low level async HTTP/1.1 client that streams request bodies out with
# chunked transfer encoding, and response bodies in as they arrive. The
# outgoing body is sent from its own task while the response is read, so
# each direction owns its own encoder or decoder.

TPayloads: TypeAlias = Union[AsyncIterable[bytes], Iterable[bytes]]
TClientAtom: TypeAlias = Union[HTTPResponseHead, DecodedChunk, BodyControl, bytes]


class ClientException(Exception):
	def __init__(self, message: str, status: int | None = None):
		super().__init__(message)
		self.message: str = message
		self.status: int | None = status


class ChunkedClient:
	@classmethod
	async def ReadHead(
		cls,
		transport: AsyncTransport,
		*,
		size: int = READ_SIZE,
		timeout: float | None = TIMEOUT,
		sender: "asyncio.Task[int] | None" = None,
	) -> tuple[HTTPResponseHead | None, bytes]:
		"""Reads the response head, returning it along with the bytes of the
		body that were read with it. The head is `None` when the peer closed
		before sending anything. While the `sender` is still uploading, each
		read is raced against it: a failed upload raises its exception, and
		once the upload is complete the `timeout` applies again."""
		parser = ResponseHeadParser()
		while True:
			reading = asyncio.ensure_future(transport.read(size))
			if sender and not sender.done():
				try:
					await asyncio.wait({reading, sender}, return_when=asyncio.FIRST_COMPLETED)
				except BaseException:
					reading.cancel()
					raise
				if not reading.done() and not sender.cancelled() and sender.exception():
					reading.cancel()
					await asyncio.gather(reading, return_exceptions=True)
					# Raises the exception the upload failed with
					sender.result()
			try:
				data = await asyncio.wait_for(reading, timeout=timeout)
			except asyncio.TimeoutError as e:
				raise ClientException("Timed out waiting for the response head") from e
			if not data:
				if parser.read:
					raise TruncatedStream(
						"Transport closed within the response head",
						consumed=parser.read,
					)
				return None, b""
			head, offset = parser.feed(data)
			if head is not None:
				return head, data[offset:]

	@classmethod
	async def Request(
		cls,
		method: str,
		host: str,
		path: str,
		*,
		port: int = PORT,
		headers: dict[str, str] | None = None,
		body: TPayloads | None = None,
		timeout: float | None = TIMEOUT,
		size: int = READ_SIZE,
	) -> AsyncIterator[TClientAtom]:
		"""Sends a request, streaming the `body` payloads as chunks, and
		yields the response head, then the body: decoded chunks followed by
		`EndOfBody` for a chunked response, raw bytes otherwise."""
		try:
			transport = await StreamTransport.Connect(host, port, timeout=timeout)
		except asyncio.TimeoutError as e:
			raise ClientException(f"Timed out connecting to {host}:{port}") from e
		event("chunked.request", f"{method} {path}", Host=host, Port=port)
		sender: asyncio.Task[int] | None = None
		failure: BaseException | None = None
		try:
			await transport.write(
				formatRequestHead(
					method, path, f"{host}:{port}", headers, chunked=body is not None
				)
			)
			if body is not None:
				sender = asyncio.create_task(awriteChunks(transport, body))
			head, rest = await cls.ReadHead(
				transport, size=size, timeout=timeout, sender=sender
			)
			if head is None:
				# The upload may have failed, in which case it's the error to report
				if sender:
					await sender
				raise ClientException("Connection closed before the response head")
			logged(debug) and debug(
				"Response head", Status=head.status, Chunked=head.isChunked
			)
			yield head
			if head.isChunked:
				try:
					async for atom in areadChunks(
						transport, size=size, initial=rest, timeout=timeout
					):
						yield atom
				except asyncio.TimeoutError as e:
					raise ClientException("Timed out reading the response body") from e
			else:
				async for data in cls.ReadRaw(
					transport, rest, head.contentLength, size=size, timeout=timeout
				):
					yield data
			if sender:
				await sender
		except BaseException as e:
			failure = e
			raise
		finally:
			if sender:
				if not sender.done():
					warning("Response ended before the request body was sent", Path=path)
					sender.cancel()
				await asyncio.gather(sender, return_exceptions=True)
			await transport.close()
			if sender:
				error = None if sender.cancelled() else sender.exception()
				if error is not None and error is not failure:
					if failure is None:
						raise error
					else:
						exception(error, "Request body upload failed")

	@classmethod
	async def ReadRaw(
		cls,
		transport: AsyncTransport,
		initial: bytes,
		length: int | None,
		*,
		size: int = READ_SIZE,
		timeout: float | None = TIMEOUT,
	) -> AsyncIterator[bytes]:
		"""Reads a body that is not chunked, delimited by its length or by the
		peer closing the connection."""
		read: int = 0
		data: bytes = initial
		while True:
			if data:
				if length is not None:
					data = data[: length - read]
				read += len(data)
				yield data
			if length is not None and read >= length:
				break
			try:
				data = await asyncio.wait_for(transport.read(size), timeout=timeout)
			except asyncio.TimeoutError as e:
				raise ClientException("Timed out reading the response body") from e
			if not data:
				if length is not None and read < length:
					raise TruncatedStream(
						"Transport closed before the end of the body", consumed=read
					)
				break

	@classmethod
	async def Upload(
		cls,
		host: str,
		path: str,
		payloads: TPayloads,
		*,
		port: int = PORT,
		method: str = "PUT",
		headers: dict[str, str] | None = None,
		timeout: float | None = TIMEOUT,
	) -> HTTPResponseHead:
		"""Streams the payloads as a chunked request body and returns the
		response head, the response body is discarded."""
		res: HTTPResponseHead | None = None
		async with aclosing(
			cls.Request(
				method,
				host,
				path,
				port=port,
				headers=headers,
				body=payloads,
				timeout=timeout,
			)
		) as atoms:
			async for atom in atoms:
				if isinstance(atom, HTTPResponseHead):
					res = atom
		if res is None:
			raise ClientException("No response received")
		return res

	@classmethod
	async def Download(
		cls,
		host: str,
		path: str,
		*,
		port: int = PORT,
		headers: dict[str, str] | None = None,
		timeout: float | None = TIMEOUT,
	) -> AsyncIterator[bytes]:
		"""Yields the payloads of the response body as they arrive. Error
		statuses raise a `ClientException`."""
		async with aclosing(
			cls.Request("GET", host, path, port=port, headers=headers, timeout=timeout)
		) as atoms:
			async for atom in atoms:
				if isinstance(atom, HTTPResponseHead):
					if atom.status >= 400:
						raise ClientException(
							f"Request failed with {atom.status} {atom.line.message}",
							status=atom.status,
						)
				elif isinstance(atom, DecodedChunk):
					yield atom.data
				elif isinstance(atom, bytes):
					yield atom


def upload(
	host: str,
	path: str,
	payloads: Iterable[bytes],
	*,
	port: int = PORT,
	method: str = "PUT",
	headers: dict[str, str] | None = None,
	timeout: float | None = TIMEOUT,
	size: int = READ_SIZE,
) -> HTTPResponseHead | None:
	"""Blocking counterpart of `ChunkedClient.Upload`, sending the whole body
	before reading the response head. Returns `None` if the server closed
	without responding."""
	with SocketTransport.Connect(host, port, timeout=timeout) as transport:
		event("chunked.request", f"{method} {path}", Host=host, Port=port)
		transport.write(
			formatRequestHead(method, path, f"{host}:{port}", headers, chunked=True)
		)
		writeChunks(transport, payloads)
		parser = ResponseHeadParser()
		while True:
			data = transport.read(size)
			if not data:
				if parser.read:
					raise TruncatedStream(
						"Transport closed within the response head",
						consumed=parser.read,
					)
				return None
			head, _ = parser.feed(data)
			if head is not None:
				return head


# EOF
