"""Unit tests for reqmanager.core.types -- enums and wire constants."""

from __future__ import annotations

import json

import pytest

from reqmanager.core.types import (
    PRIVATE_KEY_ANNOTATION,
    REVISION_ANNOTATION,
    MatchResult,
    ReconcileOutcome,
)


class TestAnnotations:
    def test_wire_names(self):
        assert PRIVATE_KEY_ANNOTATION == "private-key-secret-name"
        assert REVISION_ANNOTATION == "revision"


class TestMatchResult:
    @pytest.mark.parametrize(
        "member",
        [
            MatchResult.MISSING_REVISION,
            MatchResult.WRONG_KEY,
            MatchResult.MALFORMED_CSR,
            MatchResult.KEY_MISMATCH,
            MatchResult.SPEC_MISMATCH,
        ],
    )
    def test_invalid_members(self, member):
        assert member.is_invalid is True

    @pytest.mark.parametrize("member", [MatchResult.WRONG_REVISION, MatchResult.VALID])
    def test_members_that_are_kept(self, member):
        assert member.is_invalid is False

    def test_json_serialisable(self):
        assert json.dumps({"r": MatchResult.VALID}) == '{"r": "Valid"}'


class TestReconcileOutcome:
    def test_values(self):
        assert [o.value for o in ReconcileOutcome] == ["skipped", "converged", "mutated"]
