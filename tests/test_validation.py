from datetime import timedelta

import pytest

from conftest import BASE_TIME, build_response
from sntprace.errors import MalformedResponseError, TransportError
from sntprace.protocol.packet import encode_request
from sntprace.protocol.validation import (
    ResponseValidator,
    default_validator,
    mode_is_server,
    originate_matches,
    strict_validator,
)


def _exchange(flags=0x24, echo=True):
    request = encode_request(BASE_TIME)
    t1 = BASE_TIME if echo else BASE_TIME - timedelta(seconds=5)
    response = build_response(t1, BASE_TIME, BASE_TIME, flags=flags)
    return request, response


def test_default_validator_only_checks_length():
    request, _ = _exchange()
    validator = default_validator()
    assert validator(bytes(48), request)
    assert not validator(bytes(47), request)


def test_short_response_raises_malformed():
    with pytest.raises(MalformedResponseError) as excinfo:
        default_validator().validate(b"\x24" * 12)
    assert "got 12" in str(excinfo.value)
    assert isinstance(excinfo.value, TransportError)


def test_strict_accepts_echoed_server_reply():
    request, response = _exchange()
    assert strict_validator().reason(response, request) is None


def test_strict_rejects_client_mode():
    request, response = _exchange(flags=0x1B)
    assert "mode 3" in strict_validator().reason(response, request)


def test_strict_rejects_unmatched_originate():
    request, response = _exchange(echo=False)
    assert strict_validator().reason(response, request) == (
        "originate timestamp does not match request"
    )


def test_length_check_runs_before_header_checks():
    validator = ResponseValidator([mode_is_server, originate_matches])
    assert "expected at least 48 bytes" in validator.reason(b"\x24", b"")
