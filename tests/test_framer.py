import pytest

from grbl_link.framer import LineFramer

STREAM = (
    b"Grbl 1.1h ['$' for help]\r\n"
    b"<Idle|MPos:0.000,0.000,0.000|FS:0,0|WCO:0.000,0.000,0.000>\r\n"
    b"ok\r\n"
    b"error:20\r\n"
    b"[MSG:Caution: Unlocked]\r\n"
    b"ok\r\n"
)


def _feed_in_chunks(data: bytes, size: int) -> list[bytes]:
    framer = LineFramer()
    lines = []
    for i in range(0, len(data), size):
        lines.extend(framer.feed(data[i:i + size]))
    assert framer.flush() is None
    return lines


def test_whole_stream_in_one_chunk():
    lines = LineFramer().feed(STREAM)
    assert lines == STREAM.split(b"\r\n")[:-1]


@pytest.mark.parametrize("size", [1, 2, 3, 5, 7, 13, 64])
def test_chunk_boundaries_do_not_change_output(size):
    assert _feed_in_chunks(STREAM, size) == LineFramer().feed(STREAM)


def test_delimiter_split_across_chunks():
    framer = LineFramer()
    assert framer.feed(b"ok\r") == []
    assert framer.pending == b"ok\r"
    assert framer.feed(b"\nok") == [b"ok"]
    assert framer.pending == b"ok"


def test_flush_returns_partial_line_once():
    framer = LineFramer()
    framer.feed(b"<Idle|MPos:1")
    assert framer.flush() == b"<Idle|MPos:1"
    assert framer.flush() is None


def test_empty_lines_are_kept():
    assert LineFramer().feed(b"\r\n\r\nok\r\n") == [b"", b"", b"ok"]


def test_custom_delimiter():
    framer = LineFramer(delimiter=b"\n")
    assert framer.feed(b"a\nb\nc") == [b"a", b"b"]
    assert framer.flush() == b"c"


def test_empty_delimiter_rejected():
    with pytest.raises(ValueError):
        LineFramer(delimiter=b"")
