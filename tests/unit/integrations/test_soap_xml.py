"""
SOAP/XML Helper Unit Tests

Tag extraction over raw Brink payloads, envelope building and result-code
checks.
"""

import pytest

from integrations.base import BrinkProtocolError
from integrations.soap import (
    build_envelope,
    check_soap_response,
    extract_block,
    extract_repeated,
    extract_scalar,
    strip_elements,
)
from tests.factories import soap_fault, soap_response


class TestExtractScalar:
    def test_plain_tag(self):
        assert extract_scalar("<Total>12.50</Total>", "Total") == "12.50"

    def test_namespace_prefix_and_attributes(self):
        xml = '<a:Total xmlns:a="urn:x" kind="gross"> 12.50 </a:Total>'
        assert extract_scalar(xml, "Total") == "12.50"

    def test_case_insensitive(self):
        assert extract_scalar("<resultcode>0</resultcode>", "ResultCode") == "0"

    def test_first_match_wins(self):
        assert extract_scalar("<Id>1</Id><Id>2</Id>", "Id") == "1"

    def test_missing_returns_none(self):
        assert extract_scalar("<Total>1</Total>", "Name") is None

    def test_self_closing_nil_returns_none(self):
        assert extract_scalar('<a:Message i:nil="true"/>', "Message") is None

    def test_does_not_match_longer_tag_names(self):
        assert extract_scalar("<SubTotal>5</SubTotal>", "Total") is None
        assert extract_scalar("<TotalTax>5</TotalTax>", "Total") is None

    def test_empty_document_raises(self):
        with pytest.raises(ValueError):
            extract_scalar("", "Total")
        with pytest.raises(ValueError):
            extract_scalar(None, "Total")


class TestExtractRepeated:
    def test_document_order_and_outer_xml(self):
        xml = "<a:Orders><a:Order><a:Id>1</a:Id></a:Order><a:Order><a:Id>2</a:Id></a:Order></a:Orders>"
        blocks = extract_repeated(xml, "Order")

        assert len(blocks) == 2
        assert blocks[0] == "<a:Order><a:Id>1</a:Id></a:Order>"
        assert extract_scalar(blocks[1], "Id") == "2"

    def test_element_does_not_match_plural_or_prefixed_names(self):
        xml = "<Orders><OrderPayment><Id>9</Id></OrderPayment></Orders>"
        assert extract_repeated(xml, "Order") == []

    def test_zero_matches_is_not_an_error(self):
        assert extract_repeated("<Nothing/>", "Order") == []

    def test_empty_document_raises(self):
        with pytest.raises(ValueError):
            extract_repeated("   ", "Order")


class TestBlocks:
    def test_extract_block_returns_inner_xml(self):
        assert extract_block("<Payments><P>1</P></Payments>", "Payments") == "<P>1</P>"

    def test_strip_elements_hides_nested_collections(self):
        xml = "<Order><Entries><Entry><Id>99</Id></Entry></Entries><Breaks/><Id>1</Id></Order>"
        own = strip_elements(xml, "Entries", "Breaks")

        assert extract_scalar(own, "Id") == "1"
        assert "Breaks" not in own


class TestEnvelope:
    def test_wrapped_fields_skip_none_and_escape(self):
        envelope = build_envelope(
            "http://ns/v2",
            "GetOrders",
            {"BusinessDate": "2024-06-01", "ModifiedTime": None, "Note": "a<b"},
        )

        assert "<v2:GetOrders><v2:request><v2:BusinessDate>2024-06-01</v2:BusinessDate>" in envelope
        assert "ModifiedTime" not in envelope
        assert "a&lt;b" in envelope
        assert 'xmlns:v2="http://ns/v2"' in envelope

    def test_unwrapped(self):
        envelope = build_envelope("http://ns/v2", "GetEmployees", wrapper=None)
        assert "<v2:GetEmployees></v2:GetEmployees>" in envelope


class TestCheckSoapResponse:
    def test_success_passes(self):
        check_soap_response(soap_response("GetOrders", "Orders"))

    def test_non_zero_result_code(self):
        with pytest.raises(BrinkProtocolError) as exc_info:
            check_soap_response(soap_response("GetOrders", result_code=3, message="Invalid token"), "GetOrders")

        assert exc_info.value.result_code == 3
        assert exc_info.value.message == "Invalid token"
        assert exc_info.value.operation == "GetOrders"

    def test_fault(self):
        with pytest.raises(BrinkProtocolError, match="Access denied"):
            check_soap_response(soap_fault("Access denied"))

    def test_unreadable_result_code(self):
        with pytest.raises(BrinkProtocolError, match="Unreadable"):
            check_soap_response("<ResultCode>abc</ResultCode>")

    def test_missing_result_code_accepted(self):
        check_soap_response("<Envelope><Body/></Envelope>")
