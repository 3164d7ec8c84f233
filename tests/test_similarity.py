"""
Unit tests for name similarity.
Verifies classic Levenshtein distance and the bounded threshold test.
"""
import pytest

from treereconcile.core.similarity import edit_distance, within_distance


class TestEditDistance:
    """Test insertions, deletions and substitutions."""

    @pytest.mark.parametrize("a, b, expected", [
        ("", "", 0),
        ("", "abc", 3),
        ("abc", "", 3),
        ("report.txt", "report.txt", 0),
        ("kitten", "sitting", 3),
        ("flaw", "lawn", 2),
        ("report.txt", "report2.txt", 1),
        ("report.txt", "reprt.txt", 1),
    ])
    def test_known_distances(self, a, b, expected):
        assert edit_distance(a, b) == expected

    def test_transposition_counts_as_two_edits(self):
        """No transposition operation: swapping two characters costs 2."""
        assert edit_distance("ab", "ba") == 2

    def test_symmetric(self):
        assert edit_distance("notes.md", "notes-final.md") == edit_distance("notes-final.md", "notes.md")


class TestWithinDistance:
    """Test the bounded threshold check against the full distance."""

    @pytest.mark.parametrize("a, b", [
        ("kitten", "sitting"),
        ("invoice_2023.pdf", "invoice_2024.pdf"),
        ("a.txt", "abcd.txt"),
        ("", "abc"),
        ("photo.jpg", "photo.jpeg"),
    ])
    def test_agrees_with_edit_distance(self, a, b):
        for limit in range(0, 6):
            assert within_distance(a, b, limit) == (edit_distance(a, b) <= limit)

    def test_threshold_three_boundary(self):
        """Distance 3 passes at limit 3; distance 4 does not."""
        assert within_distance("data.csv", "data123.csv", 3)
        assert not within_distance("data.csv", "data1234.csv", 3)

    def test_length_gap_rejected(self):
        assert not within_distance("a", "abcdefgh", 3)

    def test_negative_limit(self):
        assert not within_distance("same", "same", -1)

    def test_cutoff_on_same_length_names(self):
        """Names of equal length but disjoint characters exceed the limit."""
        assert not within_distance("aaaaaaaa.txt", "bbbbbbbb.txt", 3)
        assert within_distance("img_0001.jpg", "img_0002.jpg", 1)
