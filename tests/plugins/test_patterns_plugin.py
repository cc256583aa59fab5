"""Tests for the patterns plugin."""
from __future__ import annotations

from rulesim.corpus import ArtifactContext, Corpus
from rulesim.plugins.patterns import global_file_analysis, global_pattern_count, regex_match

CORPUS = Corpus.from_files({
    "a.ts": "// TODO one\n// TODO two\n",
    "b.ts": "// FIXME\n",
    "c.ts": "clean",
})


class TestGlobalFileAnalysis:
    def test_counts_across_corpus(self) -> None:
        result = global_file_analysis({"patterns": ["TODO", "FIXME"]}, ArtifactContext.for_global(CORPUS))

        assert result["totalMatches"] == 3
        assert result["patternCounts"] == {"TODO": 2, "FIXME": 1}
        assert result["fileMatches"] == {"a.ts": 2, "b.ts": 1}
        assert result["filesScanned"] == 3

    def test_single_check_pattern(self) -> None:
        result = global_file_analysis({"checkPattern": "clean"}, ArtifactContext.for_global(CORPUS))
        assert result["totalMatches"] == 1

    def test_threshold_operator(self) -> None:
        result = global_file_analysis({"patterns": "TODO"}, ArtifactContext.for_global(CORPUS))

        assert global_pattern_count(result, 2) is True
        assert global_pattern_count(result, {"threshold": 3}) is False
        assert global_pattern_count("x", 1) is False


class TestRegexMatch:
    def test_matches(self) -> None:
        assert regex_match("src/components/Button.tsx", r"components/.*\.tsx$") is True

    def test_no_match_or_bad_input(self) -> None:
        assert regex_match("src/index.ts", r"\.tsx$") is False
        assert regex_match(None, ".*") is False
        assert regex_match("x", 3) is False
