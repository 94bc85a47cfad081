import pytest

from localjudge.comparator import compare_outputs
from localjudge.config import ComparingSettings
from localjudge.models import Verdict


def test_missing_trailing_newline_is_accepted():
    assert compare_outputs("3", "3\n", "").verdict == Verdict.ACCEPTED


def test_trailing_whitespace_is_accepted():
    assert compare_outputs("1 2  \n3\t\n\n\n", "1 2\n3\n", "").verdict == Verdict.ACCEPTED


def test_extra_spaces_are_presentation_error():
    assert compare_outputs("1  2   3\n", "1 2 3\n", "").verdict == Verdict.PRESENTATION_ERROR


def test_presentation_error_as_accepted():
    settings = ComparingSettings(regard_pe_as_ac=True)
    assert compare_outputs("1  2   3\n", "1 2 3\n", "", settings).verdict == Verdict.ACCEPTED


def test_different_line_wrapping_is_presentation_error():
    assert compare_outputs("1\n2\n3\n", "1 2 3\n", "").verdict == Verdict.PRESENTATION_ERROR


def test_wrong_answer():
    assert compare_outputs("5\n", "4\n", "").verdict == Verdict.WRONG_ANSWER


def test_content_mismatch_wins_over_layout_mismatch():
    settings = ComparingSettings(regard_pe_as_ac=True)
    assert compare_outputs("1   2\n4\n", "1 2 3\n", "", settings).verdict == Verdict.WRONG_ANSWER


def test_stderr_output_is_runtime_error():
    assert compare_outputs("3\n", "3\n", "warning").verdict == Verdict.RUNTIME_ERROR


def test_stderr_output_ignored():
    settings = ComparingSettings(ignore_error=True)
    assert compare_outputs("3\n", "3\n", "warning", settings).verdict == Verdict.ACCEPTED


def test_output_limit_checked_before_content():
    assert compare_outputs("1 " * 10, "1\n", "").verdict == Verdict.OUTPUT_LIMIT


def test_output_limit_disabled():
    settings = ComparingSettings(ole_size=0)
    assert compare_outputs("1 " * 10, "1\n", "", settings).verdict == Verdict.WRONG_ANSWER


@pytest.mark.parametrize(
    "stdout, answer",
    [("3", "3\n"), ("1  2\n", "1 2\n"), ("4\n", "5\n"), ("", "")],
)
def test_comparison_is_deterministic(stdout, answer):
    first = compare_outputs(stdout, answer, "")
    second = compare_outputs(stdout, answer, "")
    assert first.verdict == second.verdict
    assert first.message == second.message
