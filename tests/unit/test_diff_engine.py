"""
Unit tests for the DiffEngine.

Tests tokenization, alignment, whitespace handling, line projection and
error reporting.
"""

import random

import pytest
from pydantic import ValidationError

from changekit.models.diff import DiffLineKind, EditKind, EditOp, Granularity
from changekit.services.diff_engine import (
    DiffComputationError,
    DiffEngine,
    compute_stats,
    reconstruct_modified,
    reconstruct_original,
    to_diff_lines,
    tokenize,
)


ORIGINAL = "a\nb\nc\nd\ne\nf\ng\nh\n"
MODIFIED = "a\nb\nc\nD\ne\nf\ng\nh\n"


@pytest.fixture
def engine():
    """Create a whitespace-sensitive diff engine."""
    return DiffEngine()


class TestTokenize:
    """Test tokenization at each granularity."""

    def test_lines_keep_terminators(self):
        assert tokenize("a\n\nb", Granularity.LINES) == ["a\n", "\n", "b"]

    def test_words_alternate_whitespace_runs(self):
        assert tokenize("the  quick\tfox", Granularity.WORDS) == ["the", "  ", "quick", "\t", "fox"]

    def test_chars(self):
        assert tokenize("ab\n", Granularity.CHARS) == ["a", "b", "\n"]

    def test_empty_text(self):
        for granularity in Granularity:
            assert tokenize("", granularity) == []


class TestDiff:
    """Test edit op computation."""

    def test_identical_input_is_single_equal_op(self, engine):
        ops = engine.diff(ORIGINAL, ORIGINAL)

        assert ops == [EditOp(kind=EditKind.EQUAL, text=ORIGINAL)]

    def test_empty_input_yields_no_ops(self, engine):
        assert engine.diff("", "") == []

    def test_single_line_replacement(self, engine):
        ops = engine.diff(ORIGINAL, MODIFIED)

        assert ops == [
            EditOp(kind=EditKind.EQUAL, text="a\nb\nc\n"),
            EditOp(kind=EditKind.DELETE, text="d\n"),
            EditOp(kind=EditKind.INSERT, text="D\n"),
            EditOp(kind=EditKind.EQUAL, text="e\nf\ng\nh\n"),
        ]

    def test_insert_into_empty(self, engine):
        assert engine.diff("", "a\nb\n") == [EditOp(kind=EditKind.INSERT, text="a\nb\n")]

    def test_delete_everything(self, engine):
        assert engine.diff("a\nb\n", "") == [EditOp(kind=EditKind.DELETE, text="a\nb\n")]

    def test_unterminated_last_line(self, engine):
        ops = engine.diff("a\nb", "a\nc")

        assert ops == [
            EditOp(kind=EditKind.EQUAL, text="a\n"),
            EditOp(kind=EditKind.DELETE, text="b"),
            EditOp(kind=EditKind.INSERT, text="c"),
        ]

    def test_word_granularity(self, engine):
        ops = engine.diff("the quick fox", "the slow fox", Granularity.WORDS)

        assert ops == [
            EditOp(kind=EditKind.EQUAL, text="the "),
            EditOp(kind=EditKind.DELETE, text="quick"),
            EditOp(kind=EditKind.INSERT, text="slow"),
            EditOp(kind=EditKind.EQUAL, text=" fox"),
        ]

    def test_char_granularity(self, engine):
        ops = engine.diff("abc", "abd", "chars")

        assert ops == [
            EditOp(kind=EditKind.EQUAL, text="ab"),
            EditOp(kind=EditKind.DELETE, text="c"),
            EditOp(kind=EditKind.INSERT, text="d"),
        ]

    def test_shortest_edit_script(self, engine):
        """abcabba -> cbabac needs exactly five single-character edits."""
        ops = engine.diff("abcabba", "cbabac", Granularity.CHARS)

        edits = sum(len(op.text) for op in ops if op.kind != EditKind.EQUAL)
        assert edits == 5

    def test_deletions_precede_insertions_in_a_region(self, engine):
        ops = engine.diff("x\n1\n2\ny\n", "x\n3\n4\ny\n")

        kinds = [op.kind for op in ops]
        assert kinds == [EditKind.EQUAL, EditKind.DELETE, EditKind.INSERT, EditKind.EQUAL]

    def test_deterministic(self, engine):
        first = engine.diff("one two three", "three two one", Granularity.WORDS)
        second = engine.diff("one two three", "three two one", Granularity.WORDS)

        assert first == second

    @pytest.mark.parametrize("granularity", list(Granularity))
    @pytest.mark.parametrize("original,modified", [
        ("", "x\ny"),
        ("abc\n", ""),
        ("a\nb\nc\n", "c\nb\na\n"),
        ("one two three", "one three four two"),
        ("kitten", "sitting"),
        ("def f(x):\n    return x\n", "def f(x, y):\n    return x + y\n"),
    ])
    def test_replay_reconstructs_both_sides(self, engine, granularity, original, modified):
        ops = engine.diff(original, modified, granularity)

        assert reconstruct_original(ops) == original
        assert reconstruct_modified(ops) == modified

    def test_edit_ops_are_frozen(self, engine):
        op = engine.diff("a\n", "b\n")[0]

        with pytest.raises(ValidationError):
            op.text = "changed"

    def test_default_granularity(self):
        engine = DiffEngine(default_granularity="words")

        ops = engine.diff("the quick fox", "the slow fox")

        assert ops[0] == EditOp(kind=EditKind.EQUAL, text="the ")
        assert engine.diff("ab", "ac", Granularity.CHARS)[0].text == "a"

    def test_identity_has_no_insert_or_delete(self, engine):
        for granularity in Granularity:
            ops = engine.diff("same text\nhere\n", "same text\nhere\n", granularity)
            assert all(op.kind == EditKind.EQUAL for op in ops)
            assert reconstruct_original(ops) == reconstruct_modified(ops) == "same text\nhere\n"


def _lcs_length(a, b):
    """Length of the longest common subsequence, by dynamic programming."""
    previous = [0] * (len(b) + 1)
    for token in a:
        current = [0]
        for j, other in enumerate(b):
            if token == other:
                current.append(previous[j] + 1)
            else:
                current.append(max(previous[j + 1], current[j]))
        previous = current
    return previous[-1]


def _random_text(rng: random.Random) -> str:
    alphabet = ["a", "b", "c", " ", "  ", "\t", "\n", "x y\n"]
    return "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 24)))


class TestRandomizedProperties:
    """Seeded randomized checks of replay and minimality."""

    @pytest.mark.parametrize("granularity", list(Granularity))
    @pytest.mark.parametrize("ignore_whitespace", [False, True])
    def test_replay_on_random_inputs(self, granularity, ignore_whitespace):
        rng = random.Random(1729)
        engine = DiffEngine(ignore_whitespace=ignore_whitespace)

        for _ in range(300):
            original = _random_text(rng)
            modified = _random_text(rng)

            ops = engine.diff(original, modified, granularity)

            assert reconstruct_original(ops) == original
            assert reconstruct_modified(ops) == modified

    @pytest.mark.parametrize("granularity", list(Granularity))
    def test_equal_tokens_match_longest_common_subsequence(self, engine, granularity):
        rng = random.Random(4242)

        for _ in range(300):
            original = _random_text(rng)
            modified = _random_text(rng)

            ops = engine.diff(original, modified, granularity)

            kept = sum(
                len(tokenize(op.text, granularity))
                for op in ops
                if op.kind == EditKind.EQUAL
            )
            expected = _lcs_length(tokenize(original, granularity), tokenize(modified, granularity))
            assert kept == expected, (original, modified)



class TestWhitespaceInsensitive:
    """Test whitespace-normalized comparison."""

    def test_whitespace_runs_compare_equal(self):
        engine = DiffEngine(ignore_whitespace=True)

        ops = engine.diff("a  b\nc \n", "a b\nc\n")

        assert len(ops) == 1
        assert ops[0].kind == EditKind.EQUAL
        assert ops[0].text == "a  b\nc \n"
        assert ops[0].new_text == "a b\nc\n"

    def test_original_text_is_preserved(self):
        engine = DiffEngine(ignore_whitespace=True)
        original = "x =  1\ny = 2\n"
        modified = "x = 1\ny = 3\n"

        ops = engine.diff(original, modified)

        assert reconstruct_original(ops) == original
        assert reconstruct_modified(ops) == modified
        assert [op.kind for op in ops] == [EditKind.EQUAL, EditKind.DELETE, EditKind.INSERT]

    def test_newlines_are_not_normalized(self):
        engine = DiffEngine(ignore_whitespace=True)

        ops = engine.diff("a b", "a\nb", Granularity.WORDS)

        assert any(op.kind != EditKind.EQUAL for op in ops)

    def test_sensitive_mode_reports_whitespace_changes(self, engine):
        ops = engine.diff("a  b\n", "a b\n")

        assert [op.kind for op in ops] == [EditKind.DELETE, EditKind.INSERT]


class TestDiffErrors:
    """Test fail-fast input validation."""

    def test_non_string_original(self, engine):
        with pytest.raises(DiffComputationError) as exc_info:
            engine.diff(None, "a")

        assert "Original content must be a string" in str(exc_info.value)

    def test_non_string_modified(self, engine):
        with pytest.raises(DiffComputationError):
            engine.diff("a", b"a")

    def test_unknown_default_granularity(self):
        with pytest.raises(DiffComputationError):
            DiffEngine(default_granularity="paragraphs")

    def test_unknown_granularity(self, engine):
        with pytest.raises(DiffComputationError) as exc_info:
            engine.diff("a", "b", "sentences")

        assert "Unknown diff granularity" in str(exc_info.value)


class TestDiffLines:
    """Test projection of edit ops onto display lines."""

    def test_replacement_line_numbers(self, engine):
        lines = engine.diff_lines(ORIGINAL, MODIFIED)

        removed = [line for line in lines if line.kind == DiffLineKind.REMOVED]
        added = [line for line in lines if line.kind == DiffLineKind.ADDED]
        assert len(lines) == 9
        assert [(line.content, line.original_line_number, line.modified_line_number) for line in removed] == [("d", 4, None)]
        assert [(line.content, line.original_line_number, line.modified_line_number) for line in added] == [("D", None, 4)]
        assert lines[-1].original_line_number == 8
        assert lines[-1].modified_line_number == 8

    def test_op_index_back_reference(self, engine):
        ops = engine.diff(ORIGINAL, MODIFIED)
        lines = to_diff_lines(ops)

        for line in lines:
            assert line.content in ops[line.op_index].text

    def test_line_numbers_strictly_increase_per_track(self, engine):
        lines = engine.diff_lines("a\nb\nc\nd\n", "b\nx\nd\ny\nz\n")

        original_numbers = [line.original_line_number for line in lines if line.original_line_number is not None]
        modified_numbers = [line.modified_line_number for line in lines if line.modified_line_number is not None]
        assert original_numbers == [1, 2, 3, 4]
        assert modified_numbers == [1, 2, 3, 4, 5]

    def test_stats(self, engine):
        stats = compute_stats(engine.diff_lines(ORIGINAL, MODIFIED))

        assert stats.added == 1
        assert stats.removed == 1
        assert stats.unchanged == 7
        assert stats.total == 9


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
