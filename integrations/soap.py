"""
SOAP/XML Helpers

Tag-based extraction for the semi-structured SOAP payloads returned by PAR
Brink. Upstream responses are not always schema-valid, so these helpers work
on the raw text instead of a strict parser: zero matches is a normal result,
only a missing document is an error.
"""

import re
from functools import lru_cache
from xml.sax.saxutils import escape

from integrations.base import BrinkProtocolError

SOAP_ENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"

# Optional namespace prefix, e.g. the "a:" in <a:DateTime>
_PREFIX = r"(?:[\w.\-]+:)?"


@lru_cache(maxsize=256)
def _element_pattern(tag: str) -> re.Pattern:
    name = re.escape(tag)
    # The lookbehind rejects self-closing tags such as <Message i:nil="true"/>
    return re.compile(
        rf"<{_PREFIX}{name}(?:\s[^<>]*)?(?<!/)>(.*?)</{_PREFIX}{name}\s*>",
        re.IGNORECASE | re.DOTALL,
    )


@lru_cache(maxsize=256)
def _any_element_pattern(tag: str) -> re.Pattern:
    name = re.escape(tag)
    return re.compile(
        rf"<{_PREFIX}{name}(?:\s[^<>]*)?/>|<{_PREFIX}{name}(?:\s[^<>]*)?(?<!/)>.*?</{_PREFIX}{name}\s*>",
        re.IGNORECASE | re.DOTALL,
    )


def _require_document(xml: str | None) -> str:
    if xml is None or not xml.strip():
        raise ValueError("XML document is empty")
    return xml


def extract_scalar(xml: str | None, tag: str) -> str | None:
    """
    Return the trimmed text of the first <tag ...>value</tag>.

    Matching is case-insensitive and tolerates attributes and namespace
    prefixes. Returns None when the element is absent or self-closing.
    """
    match = _element_pattern(tag).search(_require_document(xml))
    if match is None:
        return None
    return match.group(1).strip()


def extract_block(xml: str | None, tag: str) -> str | None:
    """Return the untrimmed inner XML of the first <tag> element."""
    match = _element_pattern(tag).search(_require_document(xml))
    return match.group(1) if match else None


def extract_repeated(xml: str | None, element: str) -> list[str]:
    """
    Return the outer XML of every <element>...</element>, in document order.

    <Order> never matches <Orders> or <OrderPayment>.
    """
    return [m.group(0) for m in _element_pattern(element).finditer(_require_document(xml))]


def strip_elements(xml: str | None, *tags: str) -> str:
    """Remove every <tag> element (self-closing or not) from the fragment."""
    result = _require_document(xml)
    for tag in tags:
        result = _any_element_pattern(tag).sub("", result)
    return result


def build_envelope(
    namespace: str,
    operation: str,
    fields: dict[str, object] | None = None,
    wrapper: str | None = "request",
) -> str:
    """
    Build a minimal SOAP 1.1 envelope for a Brink operation.

    Fields are emitted in insertion order under the operation element, or
    under <wrapper> when one is given. None values are omitted.
    """
    body_fields = "".join(
        f"<v2:{name}>{escape(str(value))}</v2:{name}>"
        for name, value in (fields or {}).items()
        if value is not None
    )
    if wrapper:
        body_fields = f"<v2:{wrapper}>{body_fields}</v2:{wrapper}>"

    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        f'<soapenv:Envelope xmlns:soapenv="{SOAP_ENV_NS}" xmlns:v2="{namespace}">'
        "<soapenv:Header/>"
        "<soapenv:Body>"
        f"<v2:{operation}>{body_fields}</v2:{operation}>"
        "</soapenv:Body>"
        "</soapenv:Envelope>"
    )


def check_soap_response(xml: str, operation: str | None = None) -> None:
    """
    Raise BrinkProtocolError for a SOAP fault or a non-zero ResultCode.

    Responses without a ResultCode element are accepted as-is.
    """
    if not xml or not xml.strip():
        return

    if re.search(rf"<{_PREFIX}Fault[\s>]", xml, re.IGNORECASE):
        fault = extract_scalar(xml, "faultstring") or "SOAP Fault"
        raise BrinkProtocolError(None, fault, operation)

    result_code = extract_scalar(xml, "ResultCode")
    if result_code is None or result_code == "":
        return
    try:
        code = int(result_code)
    except ValueError:
        raise BrinkProtocolError(None, f"Unreadable ResultCode {result_code!r}", operation)

    if code != 0:
        message = extract_scalar(xml, "Message") or "Unknown PAR Brink error"
        raise BrinkProtocolError(code, message, operation)
