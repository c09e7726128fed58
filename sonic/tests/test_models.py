"""Tests for request schema validation."""

import pytest
from pydantic import ValidationError

from sonic.models import LoginRequest, ProjectSummary, RegisterRequest


class TestEmailAddress:
    @pytest.mark.parametrize("email", ["ada@example..com", "ada@.example.com", "a(b)@example.com", "nope"])
    def test_rejects_malformed(self, email):
        with pytest.raises(ValidationError):
            LoginRequest(email=email, password="secret123")

    def test_lowercases(self):
        request = RegisterRequest(name="Ada", email="Ada@Example.COM", password="secret123")
        assert request.email == "ada@example.com"


class TestProjectSummary:
    def test_upvote_counter_key(self):
        summary = ProjectSummary(id="c1", chai_count=3, created_at="2026-01-01T00:00:00Z")
        dumped = summary.model_dump(mode="json", by_alias=True)
        assert dumped["chai_count"] == 3
        assert dumped["mainColorTheme"] is None
