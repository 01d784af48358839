from __future__ import annotations

import threading

import pytest

from builders import make_session, typing_steps
from inputlog.config import AnalysisSettings
from inputlog.segmentation import (
    PARAGRAPH,
    REVISION,
    SENTENCE,
    START_OF_DOC,
    TYPO,
    AnalysisCancelled,
    analyze_session,
    classify_pause_location,
)


def test_backspaced_word_is_one_revision():
    steps = typing_steps("Hello") + [("delete", 0, ch, 300) for ch in "Hello"]
    analysis = analyze_session(make_session(steps))

    assert len(analysis.deletion_groups) == 1
    group = analysis.deletion_groups[0]
    assert group.type == REVISION
    assert group.content == "Hello"
    assert group.count == 5
    assert group.char_count == 5


def test_deletion_content_follows_deletion_order():
    steps = typing_steps("Hello") + [("delete", 4 - i, ch, 150) for i, ch in enumerate("olleH")]
    analysis = analyze_session(make_session(steps))

    assert [g.content for g in analysis.deletion_groups] == ["olleH"]
    assert analysis.deletion_groups[0].position == 4


def test_retyping_after_a_pause_is_a_typo_with_replacement():
    steps = typing_steps("cat", first_gap=0) + [("delete", 2, "t", 3000)] + typing_steps("dog", start=2)
    session = make_session(steps)
    analysis = analyze_session(session)

    assert session.final_text == "cadog"
    assert len(analysis.deletion_groups) == 1
    group = analysis.deletion_groups[0]
    assert group.type == TYPO
    assert group.replacement == "dog"
    assert analysis.insertion_groups == []

    assert len(analysis.pauses) == 1
    pause = analysis.pauses[0]
    assert pause.duration == 3000
    assert pause.context == "cat"
    assert pause.location == "Mid-word"
    assert pause.start_time == 200


def test_insert_long_after_deletion_is_not_a_replacement():
    steps = typing_steps("cat") + [("delete", 2, "t", 100), ("insert", 2, "r", 6000)]
    analysis = analyze_session(make_session(steps))

    assert analysis.deletion_groups[0].replacement is None


def test_navigation_breaks_replacement_chain():
    steps = typing_steps("cat") + [
        ("delete", 2, "t", 100),
        ("navigation", 2, None, 100),
        ("insert", 2, "r", 100),
    ]
    analysis = analyze_session(make_session(steps))

    assert analysis.deletion_groups[0].replacement is None


def test_empty_restore_marker_is_not_an_insertion():
    steps = typing_steps("abc") + [("insert", 0, "", 4000)] + typing_steps("d", start=3)
    session = make_session(steps)
    analysis = analyze_session(session)

    assert session.final_text == "abcd"
    assert analysis.insertion_groups == []
    assert [p.duration for p in analysis.pauses] == [4000]


def test_empty_restore_marker_breaks_replacement_chain():
    steps = typing_steps("cat") + [
        ("delete", 2, "t", 100),
        ("insert", 2, "", 100),
        ("insert", 2, "r", 100),
    ]
    analysis = analyze_session(make_session(steps))

    assert analysis.deletion_groups[0].replacement is None
    assert analysis.insertion_groups == []


def test_insertion_before_end_of_document_is_grouped():
    steps = typing_steps("The cat ran.") + [("navigation", 4, None, 500)] + typing_steps("big ", start=4)
    session = make_session(steps)
    analysis = analyze_session(session)

    assert session.final_text == "The big cat ran."
    assert len(analysis.insertion_groups) == 1
    group = analysis.insertion_groups[0]
    assert group.content == "big "
    assert group.position == 4
    assert group.count == 4
    assert group.level == SENTENCE


def test_non_contiguous_insertions_start_new_groups():
    steps = typing_steps("abcdef") + [("insert", 1, "X", 100), ("insert", 4, "Y", 100)]
    analysis = analyze_session(make_session(steps))

    assert [g.content for g in analysis.insertion_groups] == ["X", "Y"]


def test_linear_typing_produces_no_insertion_groups():
    analysis = analyze_session(make_session(typing_steps("Just typing along.")))

    assert analysis.insertion_groups == []
    assert analysis.deletion_groups == []


@pytest.mark.parametrize(
    ("content", "level"),
    [
        ("x" * 80, SENTENCE),
        ("x" * 81, PARAGRAPH),
        ("new\nline", PARAGRAPH),
    ],
)
def test_insertion_level(content, level):
    steps = typing_steps("ab") + [("paste", 1, content, 100)]
    analysis = analyze_session(make_session(steps))

    assert analysis.insertion_groups[0].level == level


@pytest.mark.parametrize(("deleted", "kind"), [("ab", TYPO), ("abc", REVISION)])
def test_typo_revision_boundary(deleted, kind):
    steps = typing_steps("abc") + [("delete", 0, deleted, 100)]
    analysis = analyze_session(make_session(steps))

    assert analysis.deletion_groups[0].type == kind


def test_deletions_far_apart_form_separate_groups():
    steps = typing_steps("abcd") + [("delete", 3, "d", 100), ("delete", 2, "c", 2500)]
    analysis = analyze_session(make_session(steps))

    assert [g.content for g in analysis.deletion_groups] == ["d", "c"]


@pytest.mark.parametrize(("gap", "expected"), [(2000, 0), (2001, 1)])
def test_pause_threshold_boundary(gap, expected):
    steps = [("insert", 0, "a", 0), ("insert", 1, "b", gap)]
    analysis = analyze_session(make_session(steps))

    assert len(analysis.pauses) == expected


def test_pause_threshold_can_be_overridden():
    steps = [("insert", 0, "a", 0), ("insert", 1, "b", 600)]
    settings = AnalysisSettings.from_milliseconds(500)

    assert len(analyze_session(make_session(steps), settings).pauses) == 1


def test_pause_at_start_of_document():
    analysis = analyze_session(make_session([("insert", 0, "a", 5000)]))

    assert analysis.pauses[0].location == "Start"
    assert analysis.pauses[0].context == START_OF_DOC


@pytest.mark.parametrize(
    ("text", "location"),
    [("", "Start"), ("para\n", "Paragraph"), ("Done.", "Sentence"), ("Why?", "Sentence"), ("word ", "Word"), ("wor", "Mid-word")],
)
def test_pause_location(text, location):
    assert classify_pause_location(text) == location


def test_pause_context_marks_newlines_and_is_truncated():
    text = "first line\n" + "y" * 30
    steps = typing_steps(text, gap=10) + [("insert", len(text), "z", 2500)]
    analysis = analyze_session(make_session(steps))

    assert analysis.pauses[0].context == "y" * 20

    steps = typing_steps("end\n", gap=10) + [("insert", 4, "z", 2500)]
    analysis = analyze_session(make_session(steps))
    assert analysis.pauses[0].context == "end↵"
    assert analysis.pauses[0].location == "Paragraph"


def test_analysis_is_idempotent():
    steps = (
        typing_steps("The cat ran.")
        + [("delete", 11, ".", 2500), ("insert", 11, "!", 100)]
        + [("navigation", 4, None, 3000)]
        + typing_steps("big ", start=4)
    )
    session = make_session(steps)

    assert analyze_session(session) == analyze_session(session)


def test_cancelled_analysis_raises():
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(AnalysisCancelled):
        analyze_session(make_session(typing_steps("abc")), cancel_event=cancel)
