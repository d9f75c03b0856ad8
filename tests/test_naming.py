import pytest

from transcript_intake.utils.naming import resolve_filename, resolve_project_name, slugify, storage_key


@pytest.mark.parametrize(
    "subject, expected",
    [
        ("[YakShaver] Sprint Review", "yakshaver"),
        ("[Tiger] Daily Standup", "tiger"),
        ("[My Project] Planning", "my-project"),
        ("YakShaver - Sprint Review", "yakshaver"),
        ("Tiger - Daily Standup", "tiger"),
        ("My Project - Planning Session", "my-project"),
        ("YakShaver: Sprint Review", "yakshaver"),
        ("My Project: Planning Session", "my-project"),
        ("No Bracket Meeting", "general"),
        ("This is a long meeting name without any prefix", "general"),
        ("", "general"),
        (None, "general"),
    ],
)
def test_resolve_project_name(subject, expected):
    assert resolve_project_name(subject) == expected


@pytest.mark.parametrize(
    "subject, start, expected",
    [
        ("[YakShaver] Sprint Review", "2026-01-23T10:00:00Z", "2026-01-23-sprint-review.vtt"),
        ("[Tiger] Daily Standup", "2026-01-26T09:00:00Z", "2026-01-26-daily-standup.vtt"),
        ("Tiger - Daily Standup", "2026-01-26T09:00:00Z", "2026-01-26-daily-standup.vtt"),
        ("Tiger: Daily Standup", "2026-01-26T09:00:00Z", "2026-01-26-daily-standup.vtt"),
        ("Quick Chat", "2026-01-26T15:00:00Z", "2026-01-26-quick-chat.vtt"),
    ],
)
def test_resolve_filename(subject, start, expected):
    assert resolve_filename(subject, start) == expected


def test_bracket_wins_over_dash_and_colon():
    subject = "[Tiger] Retro - Q1: wins"
    assert resolve_project_name(subject) == "tiger"
    assert resolve_filename(subject, "2026-03-02T08:00:00Z") == "2026-03-02-retro-q1-wins.vtt"


def test_dash_wins_over_colon():
    assert resolve_project_name("Ops: Infra - Sprint 4 Review") == "ops-infra"


def test_filename_uses_utc_date_and_graph_precision():
    assert resolve_filename("Quick Chat", "2026-01-26T23:30:00-05:00") == "2026-01-27-quick-chat.vtt"
    assert resolve_filename("Quick Chat", "2026-01-26T15:00:00.0000000Z") == "2026-01-26-quick-chat.vtt"


def test_filename_rejects_unparseable_start():
    with pytest.raises(ValueError):
        resolve_filename("Quick Chat", "next tuesday")


def test_naming_is_deterministic():
    subject = "[YakShaver] Sprint Review"
    start = "2026-01-23T10:00:00Z"
    assert resolve_project_name(subject) == resolve_project_name(subject)
    assert resolve_filename(subject, start) == resolve_filename(subject, start)


def test_slugify_strips_and_collapses():
    assert slugify("  Sprint   Review & Demo!! ") == "sprint-review-demo"
    assert slugify("Café -- Planning") == "caf-planning"
    assert slugify(None) == ""


def test_storage_key_layout():
    assert storage_key("yakshaver", "2026-01-23-sprint-review.vtt") == "yakshaver/2026-01-23-sprint-review.vtt"
    assert storage_key("tiger", "a.vtt", prefix="transcripts/") == "transcripts/tiger/a.vtt"
