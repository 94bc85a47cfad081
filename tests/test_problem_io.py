from pathlib import Path

import pytest

from localjudge.models import Verdict, is_expand_verdict, is_running_verdict
from localjudge.problem import FileIo, InlineIo, Problem, SourceFile, TcIo, TestCase, inline_small


@pytest.mark.parametrize("data", ["", "1 2\n", "a\r\nb\r\n", "x" * 1000, "tab\tand unicode é\n"])
def test_inline_file_round_trip_is_byte_identical(cache, data):
    file_io = InlineIo(data).spill(cache)
    assert file_io.use_file
    assert Path(file_io.path).read_bytes() == data.encode("utf-8")
    back = inline_small(file_io, 10 ** 6, cache)
    assert isinstance(back, InlineIo)
    assert back.data == data


def test_inline_small_keeps_big_files(cache):
    file_io = InlineIo("x" * 100).spill(cache)
    assert inline_small(file_io, 10, cache) is file_io
    assert cache.owns(file_io.path)


def test_inline_small_returns_file_to_pool(cache):
    file_io = InlineIo("small").spill(cache)
    inline_small(file_io, 1024, cache)
    assert not cache.owns(file_io.path)
    assert file_io.path in cache.free


def test_to_path_of_file_io_is_its_path(cache, tmp_path):
    path = tmp_path / "input.txt"
    path.write_text("5\n")
    io = FileIo(str(path))
    assert io.to_path(cache) == str(path)
    assert io.read() == "5\n"


def test_from_dict():
    assert TcIo.from_dict({"use_file": False, "data": "7"}) == InlineIo("7")
    assert TcIo.from_dict({"use_file": True, "data": "/tmp/x"}) == FileIo("/tmp/x")


def test_problem_keeps_test_case_order():
    problem = Problem(id="p", src=SourceFile("a.py"))
    first = problem.add_tc(TestCase())
    second = problem.add_tc(TestCase(is_disabled=True))
    third = problem.add_tc(TestCase())
    assert problem.tc_order == [first, second, third]
    assert problem.enabled_tc_ids() == [first, third]
    problem.remove_tc(first)
    assert problem.tc_order == [second, third]
    assert [tc["id"] for tc in problem.to_dict()["test_cases"]] == [second, third]


def test_verdict_helpers():
    assert Verdict.ACCEPTED.full_name == "Accepted"
    assert Verdict("WA") is Verdict.WRONG_ANSWER
    assert is_running_verdict(Verdict.COMPARING)
    assert not is_running_verdict(Verdict.SKIPPED)
    assert is_expand_verdict(Verdict.WRONG_ANSWER)
    assert not is_expand_verdict(Verdict.ACCEPTED)
    assert not is_expand_verdict(Verdict.JUDGING)
