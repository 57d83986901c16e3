"""Tests for namo/shell/line_source.py — line claims, questions, completion."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from namo.shell import line_source as line_source_mod
from namo.shell.line_source import LineSource, make_input_prompt, sanitize_terminal_input


def test_make_input_prompt_plain_and_colored(monkeypatch) -> None:
    monkeypatch.setattr(line_source_mod, "readline", None)
    assert make_input_prompt("namo> ") == "namo> "
    assert make_input_prompt("namo> ", ansi_color="1") == "\033[1mnamo> \033[0m"


def test_make_input_prompt_marks_invisible_for_readline(monkeypatch) -> None:
    monkeypatch.setattr(line_source_mod, "readline", MagicMock())
    assert make_input_prompt("q? ", ansi_color="33") == "\001\033[33m\002q? \001\033[0m\002"
    assert make_input_prompt("q? ", ansi_color="33", for_readline=False) == "\033[33mq? \033[0m"


def test_sanitize_terminal_input() -> None:
    assert sanitize_terminal_input("list\x1b[A users\r") == "list users"
    assert sanitize_terminal_input("") == ""


class TestReadLine:
    @pytest.mark.asyncio
    async def test_lines_are_trimmed_and_prompted(self, reader, output) -> None:
        reader.feed("   scan users  ")
        source = LineSource("namo> ", reader=reader, output=output)

        assert await source.read_line() == "scan users"
        assert reader.prompts == [source.prompt_text]

    @pytest.mark.asyncio
    async def test_eof_is_none(self, reader, output) -> None:
        reader.feed(None)
        source = LineSource("namo> ", reader=reader, output=output)
        assert await source.read_line() is None

    @pytest.mark.asyncio
    async def test_reader_errors_reach_the_claim(self, reader, output) -> None:
        reader.feed(OSError("stdin gone"))
        source = LineSource("namo> ", reader=reader, output=output)
        with pytest.raises(OSError, match="stdin gone"):
            await source.read_line()

    @pytest.mark.asyncio
    async def test_closed_source_refuses_reads(self, reader, output) -> None:
        source = LineSource("namo> ", reader=reader, output=output)
        source.close()
        with pytest.raises(RuntimeError):
            await source.read_line()


class TestQuestions:
    @pytest.mark.asyncio
    async def test_question_uses_its_own_prompt(self, reader, output) -> None:
        reader.feed("y")
        source = LineSource("namo> ", reader=reader, output=output)

        assert await source.question("Continue? ") == "y"
        assert reader.prompts == ["Continue? "]

    @pytest.mark.asyncio
    async def test_urgent_question_takes_the_pending_line(self, reader, output, until) -> None:
        source = LineSource("namo> ", reader=reader, output=output)
        line_task = asyncio.ensure_future(source.read_line())
        await until(lambda: len(reader.prompts) == 1)

        answer = source.request("Are you sure you want to exit? ", urgent=True)
        assert output.getvalue() == "\nAre you sure you want to exit? "

        reader.feed("no")
        assert await answer == "no"
        assert not line_task.done()

        # The waiting line claim is prompted again.
        await until(lambda: len(reader.prompts) == 2)
        assert reader.prompts[1] == source.prompt_text
        reader.feed("list users")
        assert await line_task == "list users"

    @pytest.mark.asyncio
    async def test_lines_finished_counts_answers_and_urgent_breaks(self, reader, output, until) -> None:
        source = LineSource("namo> ", reader=reader, output=output)
        question = asyncio.ensure_future(source.question("Load the next page? [Y/n] "))
        await until(lambda: len(reader.prompts) == 1)
        assert source.lines_finished == 0

        confirm = source.request("Are you sure you want to exit? ", urgent=True)
        assert source.lines_finished == 1
        reader.feed("n")
        await confirm
        reader.feed("y")
        await question

        assert source.lines_finished == 3

    @pytest.mark.asyncio
    async def test_eof_finishes_no_line(self, reader, output) -> None:
        reader.feed(None)
        source = LineSource("namo> ", reader=reader, output=output)
        await source.read_line()
        assert source.lines_finished == 0

    @pytest.mark.asyncio
    async def test_queued_question_waits_for_urgent_one(self, reader, output, until) -> None:
        source = LineSource("namo> ", reader=reader, output=output)
        page_question = asyncio.ensure_future(source.question("Load the next page? [Y/n] "))
        await until(lambda: len(reader.prompts) == 1)

        confirm = source.request("Are you sure you want to exit? ", urgent=True)
        reader.feed("n")
        assert await confirm == "n"

        await until(lambda: len(reader.prompts) == 2)
        assert reader.prompts[1] == "Load the next page? [Y/n] "
        reader.feed("")
        assert await page_question == ""

    @pytest.mark.asyncio
    async def test_cancelled_claim_is_withdrawn(self, reader, output, until) -> None:
        source = LineSource("namo> ", reader=reader, output=output)
        first = asyncio.ensure_future(source.read_line())
        await until(lambda: len(reader.prompts) == 1)
        second = source.request("other? ")

        first.cancel()
        await asyncio.gather(first, return_exceptions=True)
        reader.feed("hello")

        assert await second == "hello"

    @pytest.mark.asyncio
    async def test_close_cancels_waiting_claims(self, reader, output, until) -> None:
        source = LineSource("namo> ", reader=reader, output=output)
        pending = source.request("still there? ")
        await until(lambda: len(reader.prompts) == 1)

        source.close()

        assert pending.cancelled()
        assert source.closed
        reader.feed(None)


class TestInterrupt:
    def test_interrupt_fans_out_to_handlers(self, reader) -> None:
        source = LineSource("namo> ", reader=reader)
        first, second = MagicMock(), MagicMock()
        source.on_interrupt(first)
        source.on_interrupt(second)

        source.interrupt()

        first.assert_called_once_with()
        second.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_open_and_close_manage_sigint_handler(self, reader, monkeypatch) -> None:
        source = LineSource("namo> ", reader=reader)
        loop = asyncio.get_running_loop()
        added, removed = MagicMock(), MagicMock()
        monkeypatch.setattr(loop, "add_signal_handler", added)
        monkeypatch.setattr(loop, "remove_signal_handler", removed)

        source.open()
        source.close()

        assert added.call_args.args[1] == source.interrupt
        removed.assert_called_once()

    @pytest.mark.asyncio
    async def test_open_tolerates_missing_signal_support(self, reader, monkeypatch) -> None:
        source = LineSource("namo> ", reader=reader)
        loop = asyncio.get_running_loop()
        monkeypatch.setattr(loop, "add_signal_handler", MagicMock(side_effect=NotImplementedError))

        source.open()
        source.close()


class TestCompletion:
    def test_complete_returns_suggestion_and_partial_line(self) -> None:
        source = LineSource("namo> ", suggest=lambda line: line + "FROM")
        assert source.complete("SELECT * ") == (["SELECT * FROM"], "SELECT * ")

    def test_complete_without_suggester(self) -> None:
        assert LineSource("namo> ").complete("SEL") == ([], "SEL")

    def test_suggester_failure_is_not_fatal(self) -> None:
        def _boom(_line: str) -> str:
            raise ValueError("parser exploded")

        assert LineSource("namo> ", suggest=_boom).complete("x") == ([], "x")

    def test_readline_completer_indexes_candidates(self) -> None:
        source = LineSource("namo> ", suggest=lambda line: "LIST users")
        assert source._readline_completer("LIS", 0) == "LIST users"
        assert source._readline_completer("LIS", 1) is None

    def test_readline_completer_falls_back_to_literal_text(self) -> None:
        source = LineSource("namo> ", suggest=lambda line: "")
        assert source._readline_completer("odd input", 0) == "odd input"
        assert source._readline_completer("odd input", 1) is None

    def test_configure_readline_installs_whole_line_completer(self, monkeypatch) -> None:
        fake = MagicMock()
        monkeypatch.setattr(line_source_mod, "readline", fake)
        source = LineSource("namo> ")

        source._configure_readline_completion()

        fake.parse_and_bind.assert_called_once_with("tab: complete")
        fake.set_completer_delims.assert_called_once_with("")
        fake.set_completer.assert_called_once_with(source._readline_completer)


class TestHistory:
    def _fake_readline(self, items):
        history = list(items)
        fake = MagicMock()
        fake.get_current_history_length.side_effect = lambda: len(history)
        fake.get_history_item.side_effect = lambda pos: history[pos - 1]
        fake.remove_history_item.side_effect = lambda pos: history.pop(pos)
        return fake, history

    def test_older_duplicates_are_dropped(self, monkeypatch) -> None:
        fake, history = self._fake_readline(["a", "b", "a", "c", "a"])
        monkeypatch.setattr(line_source_mod, "readline", fake)
        monkeypatch.setattr("builtins.input", lambda prompt: "a")

        assert line_source_mod.read_line_blocking("namo> ") == "a"
        assert history == ["b", "c", "a"]

    def test_answers_are_not_kept(self, monkeypatch) -> None:
        fake, history = self._fake_readline(["list", "y"])
        monkeypatch.setattr(line_source_mod, "readline", fake)
        monkeypatch.setattr("builtins.input", lambda prompt: "y")

        assert line_source_mod.read_line_blocking("? ", keep_history=False) == "y"
        assert history == ["list"]

    def test_eof_returns_none(self, monkeypatch) -> None:
        def _eof(prompt):
            raise EOFError

        monkeypatch.setattr("builtins.input", _eof)
        assert line_source_mod.read_line_blocking("namo> ") is None
