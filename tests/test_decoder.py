import random

import pytest

from chunked.http.decoder import ChunkDecoder
from chunked.http.model import (
	AlreadyComplete,
	DecodedChunk,
	DecodePhase,
	EndOfBody,
	MalformedChunk,
	MalformedChunkDelimiter,
	MalformedChunkSize,
	TruncatedStream,
)

BODY: bytes = b"2\r\nhi\r\n3\r\nbye\r\n0\r\n\r\n"
EXPECTED = [DecodedChunk(2, b"hi"), DecodedChunk(3, b"bye"), EndOfBody]


def decode(*slices: bytes) -> list:
	decoder = ChunkDecoder()
	res: list = []
	for data in slices:
		res += list(decoder.feed(data))
	return res


def test_all_at_once():
	assert decode(BODY) == EXPECTED


def test_split_after_fifth_byte():
	assert decode(BODY[:5], BODY[5:]) == EXPECTED


def test_one_byte_at_a_time():
	assert decode(*(BODY[i : i + 1] for i in range(len(BODY)))) == EXPECTED


def test_every_split_pair():
	for i in range(len(BODY) + 1):
		for j in range(i, len(BODY) + 1):
			assert decode(BODY[:i], BODY[i:j], BODY[j:]) == EXPECTED, (i, j)


def test_round_trip_random_fragmentation():
	rng = random.Random(512)
	payloads = [bytes(rng.randrange(256) for _ in range(rng.randint(1, 300))) for _ in range(20)]
	body = b"".join(b"%x\r\n%s\r\n" % (len(_), _) for _ in payloads) + b"0\r\n\r\n"
	for _ in range(50):
		cuts = sorted(rng.sample(range(1, len(body)), rng.randint(1, 40)))
		slices = [body[i:j] for i, j in zip([0] + cuts, cuts + [len(body)])]
		atoms = decode(*slices)
		assert atoms[-1] is EndOfBody
		assert [_.data for _ in atoms[:-1]] == payloads


def test_feed_yields_many_chunks():
	decoder = ChunkDecoder()
	atoms = list(decoder.feed(b"1\r\na\r\n1\r\nb\r\n1\r\nc\r\n"))
	assert [_.data for _ in atoms] == [b"a", b"b", b"c"]
	assert decoder.state.chunks == 3
	assert decoder.phase is DecodePhase.AwaitingSizeLine


def test_residue_holds_only_the_partial_token():
	decoder = ChunkDecoder()
	assert [_.data for _ in decoder.feed(b"2\r\nhi\r\n3\r\nby")] == [b"hi"]
	assert decoder.phase is DecodePhase.AwaitingChunkData
	assert decoder.state.remaining == 1
	assert decoder.residue == b"by"
	assert list(decoder.feed(b"e\r")) == []
	assert decoder.phase is DecodePhase.AwaitingDataCRLF
	assert decoder.residue == b""
	assert list(decoder.feed(b"\n1")) == [DecodedChunk(3, b"bye")]
	assert decoder.phase is DecodePhase.AwaitingSizeLine
	assert decoder.residue == b"1"


def test_queued_input_is_kept_in_order():
	decoder = ChunkDecoder()
	first = decoder.feed(b"2\r\nhi\r\n")
	second = decoder.feed(b"3\r\nbye\r\n")
	assert [_.data for _ in second] == [b"hi", b"bye"]
	assert list(first) == []


def test_chunk_extensions_are_ignored():
	assert decode(b"5;name=value\r\nhello\r\n0\r\n\r\n") == [
		DecodedChunk(5, b"hello"),
		EndOfBody,
	]


def test_uppercase_and_padded_sizes():
	assert decode(b"A\r\n0123456789\r\n00\r\n\r\n") == [
		DecodedChunk(10, b"0123456789"),
		EndOfBody,
	]


def test_trailers_are_drained():
	decoder = ChunkDecoder()
	atoms = list(decoder.feed(b"3\r\nabc\r\n0\r\nExpires: never\r\nX-Sum: 1\r\n\r\n"))
	assert atoms == [DecodedChunk(3, b"abc"), EndOfBody]
	assert decoder.state.trailers == 2
	assert decoder.isDone


def test_done_is_idempotent():
	decoder = ChunkDecoder()
	assert list(decoder.feed(BODY)) == EXPECTED
	assert list(decoder.feed(b"2\r\nhi\r\n")) == []
	assert list(decoder.feed(b"garbage")) == []
	assert decoder.close() == []
	assert decoder.isDone


def test_strict_decoder_rejects_data_after_done():
	decoder = ChunkDecoder(strict=True)
	assert list(decoder.feed(BODY)) == EXPECTED
	assert list(decoder.feed(b"")) == []
	with pytest.raises(AlreadyComplete):
		decoder.feed(b"2\r\nhi\r\n")
	assert decoder.isDone


def test_remainder_after_terminal_chunk():
	decoder = ChunkDecoder()
	assert list(decoder.feed(b"0\r\n\r\nHTTP/1.1")) == [EndOfBody]
	assert decoder.remainder == b"HTTP/1.1"


def test_malformed_size():
	decoder = ChunkDecoder()
	with pytest.raises(MalformedChunkSize) as e:
		list(decoder.feed(b"zz\r\n"))
	assert e.value.phase is DecodePhase.AwaitingSizeLine
	assert decoder.phase is DecodePhase.Failed
	# The decoder stays failed with the same error
	with pytest.raises(MalformedChunkSize) as again:
		decoder.feed(b"2\r\nhi\r\n")
	assert again.value is e.value
	with pytest.raises(MalformedChunkSize):
		decoder.close()


def test_malformed_size_after_valid_chunks():
	decoder = ChunkDecoder()
	atoms = decoder.feed(b"2\r\nhi\r\n0x3\r\nbye\r\n")
	assert next(atoms) == DecodedChunk(2, b"hi")
	with pytest.raises(MalformedChunkSize) as e:
		next(atoms)
	assert e.value.consumed == 7


def test_size_line_limit():
	decoder = ChunkDecoder(limit=8)
	with pytest.raises(MalformedChunkSize):
		list(decoder.feed(b"1" * 20))
	decoder = ChunkDecoder(limit=8)
	with pytest.raises(MalformedChunkSize):
		list(decoder.feed(b"1;" + b"x" * 20 + b"\r\n"))


def test_trailer_line_limit():
	decoder = ChunkDecoder(limit=8)
	with pytest.raises(MalformedChunk):
		list(decoder.feed(b"0\r\nX-Trailer: " + b"x" * 20))


def test_missing_delimiter():
	with pytest.raises(MalformedChunkDelimiter):
		decode(b"3\r\nabcX\r\n")
	with pytest.raises(MalformedChunkDelimiter):
		decode(b"3\r\nabc\r", b"X")


def test_truncated_chunk():
	decoder = ChunkDecoder()
	assert list(decoder.feed(b"5\r\nabc")) == []
	assert decoder.phase is DecodePhase.AwaitingChunkData
	with pytest.raises(TruncatedStream) as e:
		decoder.close()
	assert e.value.phase is DecodePhase.AwaitingChunkData
	assert e.value.consumed == 6
	assert decoder.phase is DecodePhase.Failed
	with pytest.raises(TruncatedStream):
		decoder.feed(b"de\r\n")


@pytest.mark.parametrize(
	"data", [b"", b"2\r\nhi\r\n", b"2\r\nhi\r\n0\r\n", b"2\r\nhi\r\n0\r\n\r"]
)
def test_truncated_before_end_of_body(data: bytes):
	decoder = ChunkDecoder()
	list(decoder.feed(data))
	with pytest.raises(TruncatedStream):
		decoder.close()


def test_close_decodes_pending_input():
	decoder = ChunkDecoder()
	# The iterator is never consumed, the input is still queued
	decoder.feed(BODY)
	assert decoder.close() == EXPECTED


def test_reset():
	decoder = ChunkDecoder()
	with pytest.raises(MalformedChunkSize):
		list(decoder.feed(b"zz\r\n"))
	assert list(decoder.reset().feed(BODY)) == EXPECTED


# EOF
