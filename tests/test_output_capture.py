"""Tests for the key=value output capture protocol."""

import pytest

from guided_setup.exceptions import MalformedOutputError
from guided_setup.exec.output_capture import input_env_name, parse_outputs, read_outputs


class TestParseOutputs:
    """Test parsing of output capture text."""

    def test_key_value_lines(self):
        assert parse_outputs("A=1\nB=2\n") == {"A": "1", "B": "2"}

    def test_value_may_contain_equals(self):
        assert parse_outputs("URL=https://x.example/?a=b&c=d\n") == {
            "URL": "https://x.example/?a=b&c=d"
        }

    def test_empty_value_allowed(self):
        assert parse_outputs("EMPTY=\n") == {"EMPTY": ""}

    def test_blank_lines_ignored(self):
        assert parse_outputs("\nA=1\n\n\nB=2") == {"A": "1", "B": "2"}

    def test_crlf_tolerated(self):
        assert parse_outputs("A=1\r\nB=2\r\n") == {"A": "1", "B": "2"}

    def test_last_write_wins(self):
        assert parse_outputs("A=1\nA=2\n") == {"A": "2"}

    def test_line_without_delimiter_rejected(self):
        with pytest.raises(MalformedOutputError) as exc_info:
            parse_outputs("A=1\nnot a pair\nB=2\n")

        assert exc_info.value.line == "not a pair"
        assert exc_info.value.line_number == 2
        assert "not a pair" in str(exc_info.value)


class TestReadOutputs:
    """Test reading the output capture file."""

    def test_missing_file_is_no_outputs(self, tmp_path):
        assert read_outputs(tmp_path / "outputs.env") == {}

    def test_reads_file(self, tmp_path):
        path = tmp_path / "outputs.env"
        path.write_text("NAME=Alice\n")

        assert read_outputs(path) == {"NAME": "Alice"}

    def test_input_variable_name(self):
        assert input_env_name("NAME") == "INPUT_NAME"
