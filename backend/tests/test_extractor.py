"""
Unit tests for fact extraction with a MOCKED Anthropic client.

No real API calls: the async client is replaced with an AsyncMock whose
messages.create returns canned responses.
"""

import json
from unittest.mock import AsyncMock, MagicMock, Mock

import anthropic
import httpx
import pytest

from finhub.config import PipelineSettings
from finhub.models.extraction import Fact, coerce_amount, parse_fact
from finhub.services.extractor import (
    AnthropicFactExtractor,
    build_prompt,
    infer_currency_from_text,
    parse_extraction_response,
    strip_code_fences,
)


MOCK_NETFLIX_RESPONSE = {
    "vendor_name": "Netflix",
    "product_name": "Netflix Premium",
    "original_amount": 13.99,
    "original_currency": "eur",
    "purchase_date": "2025-06-01",
    "billing_cycle": "monthly",
    "category": "Entertainment",
}


def _mock_client(text: str | None = None, error: Exception | None = None):
    client = MagicMock()
    if error is not None:
        client.messages.create = AsyncMock(side_effect=error)
    else:
        response = Mock()
        response.content = [Mock(text=text)] if text is not None else []
        client.messages.create = AsyncMock(return_value=response)
    return client


# ---------------------------------------------------------------------------
# coerce_amount / parse_fact
# ---------------------------------------------------------------------------

class TestCoerceAmount:
    @pytest.mark.parametrize("value, expected", [
        (13.99, 13.99),
        (0, 0.0),
        ("1,200.50", 1200.5),
        ("€13.99", 13.99),
        ("$ 15", 15.0),
        ("-4.50", -4.5),
    ])
    def test_numeric_values(self, value, expected):
        assert coerce_amount(value) == expected

    @pytest.mark.parametrize("value", [
        None, "", "free", "N/A", "1.2.3", float("nan"), float("inf"), True, [], {},
    ])
    def test_non_numeric_values_become_none(self, value):
        assert coerce_amount(value) is None


class TestParseFact:
    def test_valid_response(self):
        fact = parse_fact(MOCK_NETFLIX_RESPONSE)
        assert fact.vendor_name == "Netflix"
        assert fact.original_amount == 13.99
        assert fact.original_currency == "EUR"
        assert fact.is_actionable

    def test_string_amount_is_coerced(self):
        fact = parse_fact({"vendor_name": "Amazon", "original_amount": "1,299.00"})
        assert fact.original_amount == 1299.0

    def test_non_numeric_amount_is_not_actionable(self):
        fact = parse_fact({"vendor_name": "Amazon", "original_amount": "unknown"})
        assert fact.original_amount is None
        assert not fact.is_actionable

    def test_missing_vendor_is_not_actionable(self):
        fact = parse_fact({"vendor_name": "  ", "original_amount": 10})
        assert fact.vendor_name is None
        assert not fact.is_actionable

    def test_invalid_currency_code_dropped(self):
        assert parse_fact({"original_currency": "euro"}).original_currency is None
        assert parse_fact({"original_currency": 840}).original_currency is None

    def test_legacy_price_and_currency_keys(self):
        fact = parse_fact({"vendor_name": "Zoom", "price": "14.99", "currency": "usd"})
        assert fact.original_amount == 14.99
        assert fact.original_currency == "USD"

    def test_non_string_text_fields_dropped(self):
        fact = parse_fact({"vendor_name": ["Netflix"], "category": 7, "original_amount": 1})
        assert fact.vendor_name is None
        assert fact.category is None

    @pytest.mark.parametrize("raw", [None, {}, [], "text", 42])
    def test_non_objects_return_none(self, raw):
        assert parse_fact(raw) is None


# ---------------------------------------------------------------------------
# Response parsing helpers
# ---------------------------------------------------------------------------

class TestResponseParsing:
    def test_strip_code_fences(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_json_untouched(self):
        assert strip_code_fences(' {"a": 1} ') == '{"a": 1}'

    def test_parse_fenced_response(self):
        raw = "```json\n" + json.dumps(MOCK_NETFLIX_RESPONSE) + "\n```"
        fact = parse_extraction_response(raw)
        assert fact.vendor_name == "Netflix"

    def test_invalid_json_returns_none(self):
        assert parse_extraction_response("I could not find a transaction.") is None

    def test_empty_returns_none(self):
        assert parse_extraction_response("") is None

    def test_json_array_returns_none(self):
        assert parse_extraction_response("[1, 2]") is None

    def test_missing_currency_inferred_from_text(self):
        raw = json.dumps({"vendor_name": "Swiggy", "original_amount": 450})
        fact = parse_extraction_response(raw, subject="Order", body="You paid ₹450")
        assert fact.original_currency == "INR"

    def test_present_currency_not_overridden(self):
        raw = json.dumps({"vendor_name": "Shop", "original_amount": 5, "original_currency": "GBP"})
        fact = parse_extraction_response(raw, body="Total $5")
        assert fact.original_currency == "GBP"


class TestInferCurrency:
    @pytest.mark.parametrize("text, expected", [
        ("Total: ₹1,200", "INR"),
        ("Amount Rs. 500 debited", "INR"),
        ("Paid 20 INR", "INR"),
        ("Netflix charged you €13.99", "EUR"),
        ("Total 10 EUR", "EUR"),
        ("£9.99 per month", "GBP"),
        ("$4.99 today", "USD"),
    ])
    def test_symbols_and_codes(self, text, expected):
        assert infer_currency_from_text(text) == expected

    def test_codes_must_be_whole_words(self):
        # "hours." must not read as "rs." and "europe" must not read as EUR
        assert infer_currency_from_text("Delivered in 24 hours. Ships across Europe") is None

    def test_no_currency(self):
        assert infer_currency_from_text("Thanks for your order") is None


# ---------------------------------------------------------------------------
# AnthropicFactExtractor
# ---------------------------------------------------------------------------

class TestAnthropicFactExtractor:
    def _settings(self):
        return PipelineSettings(anthropic_api_key="test-key", extraction_model="test-model")

    @pytest.mark.asyncio
    async def test_successful_extraction(self):
        client = _mock_client(json.dumps(MOCK_NETFLIX_RESPONSE))
        extractor = AnthropicFactExtractor(self._settings(), client=client)

        fact = await extractor.extract("Your Netflix receipt", "Netflix charged you €13.99.")

        assert isinstance(fact, Fact)
        assert fact.vendor_name == "Netflix"
        assert fact.original_currency == "EUR"
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert "Your Netflix receipt" in kwargs["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_default_client_built_from_settings(self, mocker):
        client = _mock_client(json.dumps(MOCK_NETFLIX_RESPONSE))
        factory = mocker.patch("anthropic.AsyncAnthropic", return_value=client)

        extractor = AnthropicFactExtractor(self._settings())
        fact = await extractor.extract("Receipt", "Netflix charged you €13.99.")

        assert fact.vendor_name == "Netflix"
        factory.assert_called_once_with(api_key="test-key", timeout=30.0, max_retries=1)

    @pytest.mark.asyncio
    async def test_empty_subject_and_body_skip_api(self):
        client = _mock_client("{}")
        extractor = AnthropicFactExtractor(self._settings(), client=client)

        assert await extractor.extract("", "   ") is None
        client.messages.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_api_error_returns_none(self):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        client = _mock_client(error=anthropic.APITimeoutError(request=request))
        extractor = AnthropicFactExtractor(self._settings(), client=client)

        assert await extractor.extract("Receipt", "Paid $5") is None

    @pytest.mark.asyncio
    async def test_empty_content_returns_none(self):
        client = _mock_client(text=None)
        extractor = AnthropicFactExtractor(self._settings(), client=client)

        assert await extractor.extract("Receipt", "Paid $5") is None

    @pytest.mark.asyncio
    async def test_garbage_response_returns_none(self):
        client = _mock_client("Sorry, I can't help with that.")
        extractor = AnthropicFactExtractor(self._settings(), client=client)

        assert await extractor.extract("Receipt", "Paid $5") is None

    def test_prompt_lists_categories(self):
        prompt = build_prompt("Subj", "Body")
        assert "Cloud Services" in prompt
        assert "Subj" in prompt and "Body" in prompt
        assert build_prompt("", "").count("N/A") == 2
