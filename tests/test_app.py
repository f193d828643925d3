import pytest

from geminikit.app import build_argument_parser, main, override
from geminikit.config import ClientConfig


@pytest.fixture(autouse=True)
def clean_environ(monkeypatch):
    for key in ("GEMINIKIT_SERVER", "GEMINIKIT_BASE_URL", "GEMINIKIT_MAX_REDIRECTIONS"):
        monkeypatch.delenv(key, raising=False)


def test_parse_serve_arguments():
    parser = build_argument_parser()
    args = parser.parse_args(["serve", "--port", "1966", "--dir", "www", "--directory-index"])
    assert args.command == "serve"
    assert args.port == 1966
    assert args.dir == "www"
    assert args.directory_index is True
    assert args.host is None


def test_parse_fetch_arguments():
    parser = build_argument_parser()
    args = parser.parse_args(["-v", "fetch", "gemini://mozz.us/", "--max-redirections", "2"])
    assert args.verbose
    assert args.url == "gemini://mozz.us/"
    assert args.max_redirections == 2


def test_override_skips_missing_options():
    config = override(ClientConfig(server="mozz.us"), server=None, max_redirections=0)
    assert config == ClientConfig(server="mozz.us", max_redirections=0)


def test_fetch_relative_url_without_base():
    assert main(["fetch", "/relative"]) == 1


def test_fetch_invalid_url():
    assert main(["fetch", "gemini://user@mozz.us/"]) == 1


def test_serve_without_certificate(tmp_path, monkeypatch):
    monkeypatch.delenv("GEMINIKIT_CERTIFICATE_PATH", raising=False)
    assert main(["serve", "--dir", str(tmp_path)]) == 1
