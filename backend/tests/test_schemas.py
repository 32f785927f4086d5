"""
Unit Tests for request validation

Run with: pytest tests/test_schemas.py -v
"""

from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError
from unittest.mock import patch

from models.schemas import ContactCreate, ErrorResponse, utc_today


def contact(**kwargs) -> ContactCreate:
    return ContactCreate(first_name="John", last_name="Doe", email="john@example.com", **kwargs)


class TestBirthDate:

    def test_utc_today_follows_utc_calendar(self):
        # 23:30 UTC on March 1st is already March 2nd east of UTC
        late_utc = datetime(2024, 3, 1, 23, 30, tzinfo=timezone.utc)
        with patch("models.schemas.datetime") as mock_datetime:
            mock_datetime.now.return_value = late_utc
            assert utc_today() == date(2024, 3, 1)
            mock_datetime.now.assert_called_once_with(timezone.utc)

    def test_birth_date_on_utc_today_accepted(self):
        with patch("models.schemas.utc_today", return_value=date(2024, 3, 1)):
            assert contact(birth_date=date(2024, 3, 1)).birth_date == date(2024, 3, 1)

    def test_birth_date_after_utc_today_rejected(self):
        with patch("models.schemas.utc_today", return_value=date(2024, 3, 1)):
            with pytest.raises(ValidationError) as exc_info:
                contact(birth_date=date(2024, 3, 2))
        assert "Birth date cannot be in the future" in str(exc_info.value)


class TestContactFields:

    def test_phone_pattern(self):
        assert contact(phone_number="+1 (555) 010-0000").phone_number == "+1 (555) 010-0000"
        with pytest.raises(ValidationError):
            contact(phone_number="555-CALL")

    def test_email_over_255_characters_rejected(self):
        with pytest.raises(ValidationError):
            ContactCreate(first_name="John", last_name="Doe", email=f"{'a' * 64}@{'b' * 60}.{'c' * 60}.{'d' * 60}.{'e' * 10}.com")


class TestErrorResponse:

    def test_defaults_to_failed_with_no_errors(self):
        body = ErrorResponse(message="Validation failed").model_dump(by_alias=True)
        assert body == {"succeeded": False, "message": "Validation failed", "errors": []}
