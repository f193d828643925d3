import pytest

from geminikit.errors import MalformedResponse, MetaTooLong
from geminikit.protocols import Response, Status, format_request, parse_response
from geminikit.protocols.base import STATUS_CODES, parse_response_header
from geminikit.urls import URLReference


def test_parse_success_response():
    response = parse_response(b"20 text/gemini; charset=utf-8; lang=en\r\n# Hello\r\n")
    assert response.status == Status.SUCCESS
    assert response.meta == "text/gemini; charset=utf-8; lang=en"
    assert response.body == b"# Hello"
    assert response.mimetype == "text/gemini"
    assert response.charset == "utf-8"
    assert response.lang == "en"
    assert response.is_success()


def test_parse_response_without_body():
    response = parse_response(b"51 Not found\r\n")
    assert response.status == Status.NOT_FOUND
    assert response.meta == "Not found"
    assert response.body is None
    assert response.mimetype is None
    assert response.is_failure()


def test_parse_response_empty_meta():
    response = parse_response(b"20\r\nbody")
    assert response.status == Status.SUCCESS
    assert response.meta == ""
    assert response.body == b"body"


def test_parse_response_trims_whitespace():
    response = parse_response(b"20   text/plain  \r\n\n  hello  \n")
    assert response.meta == "text/plain"
    assert response.body == b"hello"


def test_parse_response_body_keeps_inner_lines():
    response = parse_response(b"20 text/gemini\r\nline 1\r\nline 2\r\n")
    assert response.body == b"line 1\r\nline 2"


@pytest.mark.parametrize("status", list(Status))
def test_parse_every_known_status(status):
    response = parse_response(f"{status.value} meta\r\n".encode())
    assert response.status == status
    assert response.meta == "meta"


@pytest.mark.parametrize(
    "raw",
    [
        b"",
        b"20 text/gemini",
        b"2 text/gemini\r\n",
        b"ab text/gemini\r\n",
        b"09 text/gemini\r\n",
        b"70 text/gemini\r\n",
        b"99 text/gemini\r\n",
        b"25 text/gemini\r\n",
        b"200 text/gemini\r\n",
        b"\xff\xfe text/gemini\r\n",
        b" 20 text/gemini\r\n",
    ],
)
def test_parse_malformed_response(raw):
    with pytest.raises(MalformedResponse):
        parse_response(raw)


def test_parse_meta_max_length():
    meta = "é" * 1024
    response = parse_response(f"20 {meta}\r\n".encode())
    assert response.meta == meta


def test_parse_meta_too_long():
    meta = "é" * 1025
    with pytest.raises(MetaTooLong) as excinfo:
        parse_response(f"20 {meta}\r\n".encode())
    assert excinfo.value.length == 1025


def test_header_round_trip():
    response = Response(Status.REDIRECT_PERMANENT, "gemini://mozz.us/new/")
    header = response.get_header()
    assert header == b"31 gemini://mozz.us/new/\r\n"

    assert parse_response_header(header[:-2]) == (response.status, response.meta)
    assert parse_response(header) == response
    assert parse_response(parse_response(header).get_header()) == response


def test_status_display():
    assert Response(Status.NOT_FOUND, "gone").status_display == "51 Not Found"
    assert set(STATUS_CODES) == set(Status)


def test_response_predicates():
    assert Response(Status.SENSITIVE_INPUT, "Password").is_input()
    assert Response(Status.REDIRECT_TEMPORARY, "/").is_redirect()
    assert Response(Status.CERTIFICATE_NOT_VALID, "").is_certificate_required()
    assert not Response(Status.BAD_REQUEST, "").is_success()


def test_response_accepts_integer_status():
    assert Response(20, "text/plain").status is Status.SUCCESS
    with pytest.raises(ValueError):
        Response(25, "text/plain")


def test_response_text_uses_charset():
    response = Response(Status.SUCCESS, "text/plain; charset=latin-1", "café".encode("latin-1"))
    assert response.text == "café"


def test_response_text_defaults_to_utf8():
    response = Response(Status.SUCCESS, "text/gemini", "café".encode())
    assert response.text == "café"
    assert response.charset == "UTF-8"


def test_format_request():
    url = URLReference("gemini://mozz.us:1966/hello world?q=1#fragment")
    assert format_request(url) == b"gemini://mozz.us:1966/hello world?q=1\r\n"


def test_format_request_root_path():
    assert format_request(URLReference("gemini://mozz.us")) == b"gemini://mozz.us/\r\n"


def test_format_request_idn():
    url = URLReference("gemini://bücher.example/")
    assert format_request(url) == b"gemini://xn--bcher-kva.example/\r\n"
