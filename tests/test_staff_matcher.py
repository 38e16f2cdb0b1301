"""Unit tests for free-text "meet with" → staff matching."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from app.services.staff_directory import StaffDirectoryEntry
from app.services.staff_matcher import match_staff, STAFF_MATCHERS


def staff(first, last, email=None, **kw):
    return StaffDirectoryEntry(first_name=first, last_name=last,
                               email=email or f"{first.lower()}@x.com", **kw)


JANE = staff("Jane", "Doe", "jane@x.com")
JOHN = staff("John", "Smith", "john@x.com")
DOE = staff("Richard", "Doe", "richard@x.com")


class TestMatcherOrder:
    def test_order_is_pinned(self):
        assert [name for name, _ in STAFF_MATCHERS] == [
            "full_name", "email", "first_name", "last_name", "substring",
        ]

    def test_full_name_match(self):
        assert match_staff("Jane Doe", [JOHN, JANE]) == ("full_name", JANE)

    def test_case_and_whitespace_ignored(self):
        assert match_staff("  jane   DOE ", [JANE]) == ("full_name", JANE)

    def test_email_match(self):
        assert match_staff("JOHN@x.com", [JANE, JOHN]) == ("email", JOHN)

    def test_first_name_match(self):
        assert match_staff("john", [JANE, JOHN]) == ("first_name", JOHN)

    def test_last_name_match(self):
        assert match_staff("smith", [JANE, JOHN]) == ("last_name", JOHN)

    def test_substring_query_contains_name(self):
        assert match_staff("Mr. John Smith (Sales)", [JANE, JOHN]) == ("substring", JOHN)

    def test_substring_name_contains_query(self):
        assert match_staff("ane Do", [JOHN, JANE]) == ("substring", JANE)

    def test_earlier_matcher_beats_earlier_entry(self):
        # DOE is first in the list and matches by last name, but JANE matches by full name
        assert match_staff("Jane Doe", [DOE, JANE]) == ("full_name", JANE)

    def test_last_name_ambiguity_takes_first_entry(self):
        assert match_staff("Doe", [DOE, JANE]) == ("last_name", DOE)


class TestNoMatch:
    @pytest.mark.parametrize("query", ["", "   ", None])
    def test_blank_query_never_matches(self, query):
        assert match_staff(query, [JANE, JOHN]) is None

    def test_unknown_person(self):
        assert match_staff("Nonexistent Person", [JANE, JOHN]) is None

    def test_inactive_staff_skipped(self):
        inactive = staff("Jane", "Doe", is_active=False)
        assert match_staff("Jane Doe", [inactive]) is None

    def test_blank_name_parts_do_not_match_everything(self):
        nameless = staff("", "", "nobody@x.com")
        assert match_staff("Anyone at all", [nameless]) is None
