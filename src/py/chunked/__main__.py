import argparse
import asyncio
import sys
from typing import BinaryIO, Iterator
from urllib.parse import urlparse

from .client import ChunkedClient, ClientException, upload
from .config import HOST, PORT, READ_SIZE, TIMEOUT
from .http.model import ChunkError
from .utils.logging import error, exception, info, setLevel

# --
# A minimal command line client: `put` streams its standard input as
# a chunked request body, `get` writes the response body payloads to the
# standard output as they arrive.


def target(url: str) -> tuple[str, int, str]:
	"""Returns the host, port and path of the given URL, the scheme being
	optional."""
	parsed = urlparse(url if "://" in url else f"http://{url}")
	path = parsed.path or "/"
	if parsed.query:
		path = f"{path}?{parsed.query}"
	return parsed.hostname or HOST, parsed.port or PORT, path


def lines(stream: BinaryIO) -> Iterator[bytes]:
	"""Yields the input line by line, so that each line is sent as soon as
	it is available."""
	while line := stream.readline():
		yield line


def blocks(stream: BinaryIO, size: int = READ_SIZE) -> Iterator[bytes]:
	while block := stream.read(size):
		yield block


def put(url: str, *, method: str, timeout: float, byLine: bool) -> int:
	host, port, path = target(url)
	stdin: BinaryIO = sys.stdin.buffer
	head = upload(
		host,
		path,
		lines(stdin) if byLine else blocks(stdin),
		port=port,
		method=method,
		timeout=timeout,
	)
	if head is None:
		error("No response received", Host=host, Port=port)
		return 1
	info("Response", Status=head.status, Message=head.line.message)
	return 0 if head.status < 400 else 1


async def get(url: str, *, timeout: float) -> int:
	host, port, path = target(url)
	out: BinaryIO = sys.stdout.buffer
	async for payload in ChunkedClient.Download(host, path, port=port, timeout=timeout):
		out.write(payload)
		out.flush()
	return 0


def main(args: list[str] | None = None) -> int:
	parser = argparse.ArgumentParser(
		prog="chunked",
		description="Streams HTTP/1.1 bodies with chunked transfer encoding",
		formatter_class=argparse.ArgumentDefaultsHelpFormatter,
	)
	parser.add_argument(
		"-t",
		"--timeout",
		action="store",
		dest="timeout",
		type=float,
		help="Connection and read timeout, in seconds",
		default=TIMEOUT,
	)
	parser.add_argument(
		"-v",
		"--verbose",
		action="store_true",
		dest="verbose",
		help="Logs debugging information",
	)
	commands = parser.add_subparsers(dest="command", required=True)
	cmd_put = commands.add_parser("put", help="Streams stdin as a request body")
	cmd_put.add_argument("url", help="Target URL, as in localhost:3000/path")
	cmd_put.add_argument(
		"-m", "--method", dest="method", default="PUT", help="Request method"
	)
	cmd_put.add_argument(
		"-b",
		"--blocks",
		action="store_true",
		dest="blocks",
		help="Sends fixed-size blocks instead of lines",
	)
	cmd_get = commands.add_parser("get", help="Writes a response body to stdout")
	cmd_get.add_argument("url", help="Target URL, as in localhost:3000/path")
	options = parser.parse_args(args)
	if options.verbose:
		setLevel("Debug")
	try:
		if options.command == "put":
			return put(
				options.url,
				method=options.method,
				timeout=options.timeout,
				byLine=not options.blocks,
			)
		else:
			return asyncio.run(get(options.url, timeout=options.timeout))
	except (ChunkError, ClientException) as e:
		error(str(e), e.__class__.__name__)
		return 1
	except OSError as e:
		error(f"Transport failed: {e}", e.errno)
		return 1
	except Exception as e:
		exception(e, "Unexpected failure")
		return 2


if __name__ == "__main__":
	sys.exit(main())

# EOF
