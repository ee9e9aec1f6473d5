"""Tests for the built-in filters.

Built-ins never fork: literal sources, concatenation, tee, glob and the
discarding sink all run in-process and, apart from streams, can be
driven more than once.
"""

import io
from pathlib import Path

from py_shell.builtin import Concat, Echo
from py_shell.logging import LogLevel
from py_shell.shell import Shell

# -- Cycle 1: Echo -------------------------------------------------------------


class TestEcho:
    """Verify the literal source."""

    def test_yields_strings_in_order(self, tmp_path: Path) -> None:
        """Echo should produce exactly its arguments."""
        with Shell(cwd=tmp_path) as sh:
            assert sh.echo("a", "b", "c").to_list() == ["a", "b", "c"]

    def test_restartable(self, tmp_path: Path) -> None:
        """Driving an Echo twice gives the same records."""
        with Shell(cwd=tmp_path) as sh:
            source = sh.echo("x", "y")
            assert source.to_list() == source.to_list()

    def test_bytes_end_with_separator(self, tmp_path: Path) -> None:
        """The byte view puts a separator after every record."""
        with Shell(cwd=tmp_path, record_separator="\n") as sh:
            assert b"".join(sh.echo("a", "b").chunks()) == b"a\nb\n"

    def test_empty(self, tmp_path: Path) -> None:
        """An Echo with no strings is an empty source."""
        with Shell(cwd=tmp_path) as sh:
            assert sh.echo().to_list() == []


# -- Cycle 2: Concat -----------------------------------------------------------


class TestConcat:
    """Verify concatenation."""

    def test_plus_operator(self, tmp_path: Path) -> None:
        """``a + b`` yields all of a, then all of b."""
        with Shell(cwd=tmp_path) as sh:
            combined = sh.echo("a", "b", "c") + sh.echo("d", "e")
            assert isinstance(combined, Concat)
            assert combined.to_list() == ["a", "b", "c", "d", "e"]

    def test_concat_of_many(self, tmp_path: Path) -> None:
        """Concat takes any number of operands."""
        with Shell(cwd=tmp_path) as sh:
            combined = sh.concat(sh.echo("1"), sh.echo("2"), sh.echo("3"))
            assert combined.to_list() == ["1", "2", "3"]

    def test_command_then_literal(self, tmp_path: Path) -> None:
        """A command's records come out before the next operand's."""
        with Shell(cwd=tmp_path) as sh:
            combined = sh.system("printf", "a\\nb\\n") + sh.echo("c")
            assert combined.to_list() == ["a", "b", "c"]

    def test_input_is_first_operand(self, tmp_path: Path) -> None:
        """A piped-in input comes before the constructor operands."""
        with Shell(cwd=tmp_path) as sh:
            tail = sh.concat(sh.echo("z"))
            assert (sh.echo("y") | tail).to_list() == ["y", "z"]


# -- Cycle 3: Cat and sources --------------------------------------------------


class TestCat:
    """Verify file and stream sources."""

    def test_cat_files_in_order(self, tmp_path: Path) -> None:
        """Files should be read whole, one after the other."""
        (tmp_path / "one.txt").write_text("1\n2\n")
        (tmp_path / "two.txt").write_text("3\n")
        with Shell(cwd=tmp_path) as sh:
            assert sh.cat("one.txt", "two.txt").to_list() == ["1", "2", "3"]

    def test_cat_is_restartable(self, tmp_path: Path) -> None:
        """A file source re-reads the file each time it is driven."""
        (tmp_path / "f.txt").write_text("a\n")
        with Shell(cwd=tmp_path) as sh:
            cat = sh.cat("f.txt")
            assert cat.to_list() == ["a"]
            assert cat.to_list() == ["a"]

    def test_cat_text_stream(self, tmp_path: Path) -> None:
        """An open text stream is a valid source."""
        with Shell(cwd=tmp_path) as sh:
            assert sh.cat(io.StringIO("a\nb\n")).to_list() == ["a", "b"]

    def test_stream_is_read_once(self, tmp_path: Path) -> None:
        """A stream, once consumed, yields nothing more."""
        with Shell(cwd=tmp_path) as sh:
            cat = sh.cat(io.BytesIO(b"a\n"))
            assert cat.to_list() == ["a"]
            assert cat.to_list() == []

    def test_cat_mixes_filters(self, tmp_path: Path) -> None:
        """Filters can be concatenated alongside paths."""
        (tmp_path / "f.txt").write_text("file\n")
        with Shell(cwd=tmp_path) as sh:
            assert sh.cat(sh.echo("lit"), "f.txt").to_list() == ["lit", "file"]


# -- Cycle 4: Tee ----------------------------------------------------------------


class TestTee:
    """Verify pass-through with a side copy."""

    def test_passes_records_and_writes_file(self, tmp_path: Path) -> None:
        """Records flow through unchanged and land in the side file."""
        with Shell(cwd=tmp_path, record_separator="\n") as sh:
            assert (sh.echo("a", "b") | sh.tee("side.txt")).to_list() == ["a", "b"]
        assert (tmp_path / "side.txt").read_text() == "a\nb\n"

    def test_append(self, tmp_path: Path) -> None:
        """An appending tee keeps earlier content."""
        (tmp_path / "side.txt").write_text("old\n")
        with Shell(cwd=tmp_path, record_separator="\n") as sh:
            (sh.echo("new") | sh.tee("side.txt", append=True)).drain()
        assert (tmp_path / "side.txt").read_text() == "old\nnew\n"

    def test_side_file_failure_does_not_stop_records(self, tmp_path: Path) -> None:
        """An unopenable side file is logged and the records still flow."""
        with Shell(cwd=tmp_path) as sh:
            tee = sh.tee("missing-dir/side.txt")
            assert (sh.echo("a") | tee).to_list() == ["a"]
            errors = sh.context.logger.filter(min_level=LogLevel.ERROR)
            assert any("tee" in e.message for e in errors)

    def test_without_input(self, tmp_path: Path) -> None:
        """A tee with nothing attached produces nothing."""
        with Shell(cwd=tmp_path) as sh:
            assert sh.tee("side.txt").to_list() == []

    def test_tee_into_command(self, tmp_path: Path) -> None:
        """A tee can sit between two stages of a pipeline."""
        with Shell(cwd=tmp_path) as sh:
            result = (sh.echo("b", "a") | sh.tee("copy.txt") | sh.system("sort")).to_list()
        assert result == ["a", "b"]
        assert (tmp_path / "copy.txt").exists()


# -- Cycle 5: Glob ---------------------------------------------------------------


class TestGlob:
    """Verify path-name expansion."""

    def test_sorted_relative_matches(self, tmp_path: Path) -> None:
        """Matches are relative to cwd and sorted."""
        for name in ("b.txt", "a.txt", "c.log"):
            (tmp_path / name).write_text("")
        with Shell(cwd=tmp_path) as sh:
            assert sh.glob("*.txt").to_list() == ["a.txt", "b.txt"]

    def test_recursive(self, tmp_path: Path) -> None:
        """``**`` descends into subdirectories."""
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "deep.txt").write_text("")
        (tmp_path / "top.txt").write_text("")
        with Shell(cwd=tmp_path) as sh:
            assert sh.glob("**/*.txt").to_list() == ["sub/deep.txt", "top.txt"]

    def test_no_matches(self, tmp_path: Path) -> None:
        """A pattern matching nothing yields nothing."""
        with Shell(cwd=tmp_path) as sh:
            assert sh.glob("*.none").to_list() == []

    def test_sees_new_files(self, tmp_path: Path) -> None:
        """Each drive re-evaluates the pattern."""
        with Shell(cwd=tmp_path) as sh:
            matches = sh.glob("*.txt")
            assert matches.to_list() == []
            (tmp_path / "late.txt").write_text("")
            assert matches.to_list() == ["late.txt"]


# -- Cycle 6: Discard ------------------------------------------------------------


class TestDiscard:
    """Verify the discarding sink."""

    def test_yields_nothing(self, tmp_path: Path) -> None:
        """Discard swallows every record."""
        with Shell(cwd=tmp_path) as sh:
            assert (sh.echo("a", "b") | sh.devnull()).to_list() == []

    def test_still_drives_upstream(self, tmp_path: Path) -> None:
        """The upstream command runs to completion."""
        with Shell(cwd=tmp_path) as sh:
            (sh.system("sh", "-c", "echo x > made.txt") | sh.devnull()).drain()
        assert (tmp_path / "made.txt").read_text() == "x\n"


# -- Cycle 7: Record separators --------------------------------------------------


class TestRecordSeparator:
    """Verify splitting at custom separators."""

    def test_per_filter_separator(self, tmp_path: Path) -> None:
        """A filter's own separator overrides the shell's."""
        with Shell(cwd=tmp_path) as sh:
            cmd = sh.system("printf", "a:b:c")
            cmd.record_separator = ":"
            assert cmd.to_list() == ["a", "b", "c"]

    def test_explicit_separator_argument(self, tmp_path: Path) -> None:
        """``lines(sep)`` splits at the given separator."""
        with Shell(cwd=tmp_path) as sh:
            assert list(sh.system("printf", "x,y").lines(",")) == ["x", "y"]

    def test_shell_default_separator(self, tmp_path: Path) -> None:
        """The shell-wide separator applies to every filter."""
        with Shell(cwd=tmp_path, record_separator="\0") as sh:
            echo = sh.echo("a", "b")
            assert isinstance(echo, Echo)
            assert b"".join(echo.chunks()) == b"a\0b\0"
            assert sh.system("printf", "p\\0q\\0").to_list() == ["p", "q"]
