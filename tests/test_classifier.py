import httpx
import pytest

from restlane.classifier import ResponseDecoder, classify
from restlane.errors import InvalidResponseFormat
from restlane.schemas import OutcomeKind


def test_decode_json_payload():
    response = httpx.Response(200, json={"id": "9"})
    assert ResponseDecoder().decode(response) == {"id": "9"}


def test_decode_json_null_is_valid():
    response = httpx.Response(200, content=b"null", headers={"Content-Type": "application/json"})
    assert ResponseDecoder().decode(response) is None


def test_decode_empty_body_is_none():
    response = httpx.Response(200, content=b"", headers={"Content-Type": "application/json"})
    assert ResponseDecoder().decode(response) is None


@pytest.mark.parametrize("status", [200, 404, 503])
def test_decode_html_fails_regardless_of_status(status):
    response = httpx.Response(status, html="<html><body>Bad Gateway</body></html>")
    with pytest.raises(InvalidResponseFormat, match="HTML"):
        ResponseDecoder().decode(response)


def test_decode_malformed_payload():
    response = httpx.Response(200, content=b"{not json", headers={"Content-Type": "application/json"})
    with pytest.raises(InvalidResponseFormat, match="malformed"):
        ResponseDecoder().decode(response)


def test_strictness_is_per_decoder():
    body = b'{"value": NaN}'
    response = httpx.Response(200, content=body, headers={"Content-Type": "application/json"})
    with pytest.raises(InvalidResponseFormat):
        ResponseDecoder(strict=True).decode(response)
    decoded = ResponseDecoder(strict=False).decode(response)
    assert decoded["value"] != decoded["value"]


@pytest.mark.parametrize(
    "status, kind",
    [
        (None, OutcomeKind.TRANSPORT_ERROR),
        (200, OutcomeKind.SUCCESS),
        (201, OutcomeKind.SUCCESS),
        (204, OutcomeKind.EMPTY_BODY),
        (304, OutcomeKind.SUCCESS),
        (400, OutcomeKind.PERMANENT_CLIENT_ERROR),
        (404, OutcomeKind.PERMANENT_CLIENT_ERROR),
        (429, OutcomeKind.RATE_LIMITED),
        (500, OutcomeKind.RETRYABLE_SERVER_ERROR),
        (503, OutcomeKind.RETRYABLE_SERVER_ERROR),
    ],
)
def test_classify_status(status, kind):
    assert classify(status).kind is kind


def test_classify_204_drops_payload():
    outcome = classify(204, {"ignored": True})
    assert outcome.payload is None


def test_classify_rate_limited_reason_from_headers():
    outcome = classify(429, {"retry_after": 1}, {"Retry-After": "1"})
    assert outcome.retryable
    assert outcome.reason == "retry after 1s"
