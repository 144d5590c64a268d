"""Tests for market question date extraction."""

from __future__ import annotations

import pytest

from calabi.utils.question import day_from_question, month_from_question


class TestDayFromQuestion:
    def test_any_incident_question(self) -> None:
        assert day_from_question("Will GitHub have any incident on August 30th 2023?") == 30

    def test_red_incident_question(self) -> None:
        assert day_from_question("Will GitHub have a red incident on August 30th 2023?") == 30

    @pytest.mark.parametrize(
        ("question", "expected"),
        [
            ("Will GitHub have any incident on August 1st 2023?", 1),
            ("Will GitHub have any incident on August 01st 2023?", 1),
            ("Will GitHub have any incident on September 2nd 2023?", 2),
            ("Will GitHub have any incident on October 23rd 2023?", 23),
        ],
    )
    def test_ordinal_suffixes(self, question: str, expected: int) -> None:
        assert day_from_question(question) == expected

    def test_no_date(self) -> None:
        assert day_from_question("Will GitHub have any incident?") is None

    def test_without_on(self) -> None:
        assert day_from_question("Will GitHub have any incident August 30th 2023?") is None

    def test_repeated_on(self) -> None:
        assert day_from_question("Will GitHub have any incident on on August 30th 2023?") == 30

    def test_out_of_range_day(self) -> None:
        assert day_from_question("Will GitHub have any incident on August 45th?") is None


class TestMonthFromQuestion:
    @pytest.mark.parametrize(
        ("question", "expected"),
        [
            ("Will GitHub have any incident on January 3rd 2024?", 1),
            ("Will GitHub have any incident on August 30th 2023?", 8),
            ("Will GitHub have a red incident on September 6th 2023?", 9),
            ("Will GitHub have any incident on December 31st 2023?", 12),
        ],
    )
    def test_month_names(self, question: str, expected: int) -> None:
        assert month_from_question(question) == expected

    def test_case_insensitive(self) -> None:
        assert month_from_question("WILL GITHUB HAVE ANY INCIDENT ON NOVEMBER 5TH?") == 11

    def test_no_month(self) -> None:
        assert month_from_question("Will GitHub have any incident tomorrow?") is None

    def test_month_inside_word_ignored(self) -> None:
        assert month_from_question("Will GitHub have any incident on Marchday?") is None
