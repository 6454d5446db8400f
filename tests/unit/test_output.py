"""Tests for output controllers."""

import io

from forking_test_runner.output import (
    FAILURE_END_MARKER,
    FAILURE_START_MARKER,
    BufferedOutput,
    StreamingOutput,
    create_output_controller,
)


def test_create_output_controller_selects_mode() -> None:
    """Quiet selects buffering, otherwise streaming."""
    stream = io.BytesIO()

    assert isinstance(create_output_controller(stream, quiet=True), BufferedOutput)
    assert isinstance(create_output_controller(stream, quiet=False), StreamingOutput)


class TestStreamingOutput:
    """Tests for StreamingOutput."""

    def test_streams_chunks_immediately(self) -> None:
        """Each chunk is visible as soon as it is written."""
        stream = io.BytesIO()
        output = StreamingOutput(stream=stream)

        output.begin("tests/test_a.py")
        output.write(b"first\n")
        assert stream.getvalue().endswith(b"first\n")
        output.write(b"second\n")
        output.finish("tests/test_a.py", succeeded=True)

        assert stream.getvalue() == (
            b"Running tests tests/test_a.py\nfirst\nsecond\ntests/test_a.py ---- OK\n"
        )

    def test_reports_failure(self) -> None:
        """A failed file is marked as Fail."""
        stream = io.BytesIO()
        output = StreamingOutput(stream=stream)

        output.begin("tests/test_a.py")
        output.finish("tests/test_a.py", succeeded=False)

        assert b"tests/test_a.py ---- Fail" in stream.getvalue()


class TestBufferedOutput:
    """Tests for BufferedOutput."""

    def test_passing_output_is_never_emitted(self) -> None:
        """Only a progress marker is written for passing files."""
        stream = io.BytesIO()
        output = BufferedOutput(stream=stream)

        for path in ("a.py", "b.py"):
            output.begin(path)
            output.write(b"noisy passing output\n")
            output.finish(path, succeeded=True)
        output.close()

        assert stream.getvalue() == b"..\n"

    def test_failing_output_is_emitted_between_markers(self) -> None:
        """The full buffered block is released with start and end markers."""
        stream = io.BytesIO()
        output = BufferedOutput(stream=stream)

        output.begin("a.py")
        output.write(b"part one ")
        output.write(b"part two\n")
        assert stream.getvalue() == b""
        output.finish("a.py", succeeded=False)

        text = stream.getvalue().decode()
        start = text.index(f"{FAILURE_START_MARKER} a.py")
        end = text.index(f"{FAILURE_END_MARKER} a.py")
        assert start < text.index("part one part two\n") < end

    def test_buffer_does_not_leak_between_files(self) -> None:
        """Output of a passing file never shows up in a later failure."""
        stream = io.BytesIO()
        output = BufferedOutput(stream=stream)

        output.begin("a.py")
        output.write(b"from a\n")
        output.finish("a.py", succeeded=True)
        output.begin("b.py")
        output.write(b"from b")
        output.finish("b.py", succeeded=False)

        text = stream.getvalue().decode()
        assert "from a" not in text
        assert "from b\n" in text
        assert text.startswith(".F\n")
