import base64

import httpx

from adlinkton.services import favicons
from adlinkton.services.favicons import (
    FaviconStore,
    domain_hash,
    fallback_color,
    fetch_with_timeout,
    is_valid_image,
    sniff_image_type,
)


PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24
ICO = b"\x00\x00\x01\x00" + b"\x00" * 24


def _store(tmp_path, name="favicons"):
    return FaviconStore(storage_dir=tmp_path / name)


def _recording_fetch(monkeypatch, responses):
    calls = []

    def fake_fetch(url, timeout, max_bytes, max_redirects=3, verify=True):
        calls.append(url)
        return responses.get(url)

    monkeypatch.setattr(favicons, "fetch_with_timeout", fake_fetch)
    return calls


def test_sniff_image_type_recognizes_supported_formats():
    assert sniff_image_type(PNG) == "image/png"
    assert sniff_image_type(b"\xff\xd8\xff\xe0rest") == "image/jpeg"
    assert sniff_image_type(b"GIF89a....") == "image/gif"
    assert sniff_image_type(ICO) == "image/vnd.microsoft.icon"
    assert sniff_image_type(b"<html><body>404</body></html>") is None


def test_is_valid_image_enforces_size_limit():
    assert is_valid_image(PNG, max_bytes=100 * 1024)
    assert not is_valid_image(PNG + b"\x00" * (100 * 1024), max_bytes=100 * 1024)
    assert not is_valid_image(b"", max_bytes=100 * 1024)


def test_fetch_tries_candidates_in_order_and_saves_first_valid(tmp_path, monkeypatch):
    calls = _recording_fetch(
        monkeypatch,
        {
            "https://example.com/favicon.png": b"<html>not an icon</html>",
            "https://example.com/apple-touch-icon.png": ICO,
        },
    )
    store = _store(tmp_path)

    path = store.fetch("https://example.com/some/page", timeout=2)

    digest = domain_hash("example.com")
    assert path == f"/favicons/{digest}.ico"
    assert calls == [
        "https://example.com/favicon.ico",
        "https://example.com/favicon.png",
        "https://example.com/apple-touch-icon.png",
    ]
    assert (tmp_path / "favicons" / f"{digest}.ico").read_bytes() == ICO


def test_fetch_reuses_cached_favicon_for_same_domain(tmp_path, monkeypatch):
    calls = _recording_fetch(monkeypatch, {"https://example.com/favicon.ico": PNG})
    store = _store(tmp_path)

    first = store.fetch("https://example.com/one")
    second = store.fetch("https://EXAMPLE.com/two?x=1")

    assert first == second == f"/favicons/{domain_hash('example.com')}.png"
    assert calls == ["https://example.com/favicon.ico"]


def test_fallback_is_deterministic_per_domain(tmp_path, monkeypatch):
    _recording_fetch(monkeypatch, {})

    first = _store(tmp_path, "a").fetch("https://unreachable.example/")
    second = _store(tmp_path, "b").fetch("https://unreachable.example/other")

    digest = domain_hash("unreachable.example")
    assert first == second == f"/favicons/{digest}.svg"
    svg_a = (tmp_path / "a" / f"{digest}.svg").read_text()
    svg_b = (tmp_path / "b" / f"{digest}.svg").read_text()
    assert svg_a == svg_b
    assert f'fill="{fallback_color("unreachable.example")}"' in svg_a
    assert fallback_color("unreachable.example") == "#" + digest[:6]
    assert ">U</text>" in svg_a


def test_fetch_accepts_bare_domain(tmp_path, monkeypatch):
    calls = _recording_fetch(monkeypatch, {"https://bare.example/favicon.ico": PNG})

    path = _store(tmp_path).fetch("bare.example")

    assert path == f"/favicons/{domain_hash('bare.example')}.png"
    assert calls == ["https://bare.example/favicon.ico"]


def test_fetch_returns_none_when_domain_cannot_be_parsed(tmp_path, monkeypatch):
    calls = _recording_fetch(monkeypatch, {})
    store = _store(tmp_path)

    assert store.fetch("not a url") is None
    assert calls == []
    assert not (tmp_path / "favicons").exists()


def test_new_asset_replaces_other_extensions_for_domain(tmp_path):
    store = _store(tmp_path)
    digest = domain_hash("example.com")

    store.generate_fallback("example.com")
    path = store.save(PNG, "example.com")

    assert path == f"/favicons/{digest}.png"
    assert sorted(p.name for p in (tmp_path / "favicons").iterdir()) == [f"{digest}.png"]


def test_save_data_url_persists_inline_icon(tmp_path, monkeypatch):
    calls = _recording_fetch(monkeypatch, {})
    store = _store(tmp_path)
    data_url = "data:image/png;base64," + base64.b64encode(PNG).decode("ascii")

    path = store.save_data_url(data_url, "https://inline.example/page")

    digest = domain_hash("inline.example")
    assert path == f"/favicons/{digest}.png"
    assert (tmp_path / "favicons" / f"{digest}.png").read_bytes() == PNG
    assert calls == []


def test_save_data_url_rejects_malformed_or_non_image_payloads(tmp_path):
    store = _store(tmp_path)
    url = "https://inline.example/"
    html_payload = base64.b64encode(b"<html></html>").decode("ascii")

    assert store.save_data_url("data:image/png,notbase64", url) is None
    assert store.save_data_url("data:image/png;base64,@@@", url) is None
    assert store.save_data_url(f"data:image/png;base64,{html_payload}", url) is None
    oversized = base64.b64encode(PNG + b"\x00" * (100 * 1024)).decode("ascii")
    assert store.save_data_url(f"data:image/png;base64,{oversized}", url) is None
    assert not (tmp_path / "favicons").exists()


def _mock_client(monkeypatch, handler):
    real_client = httpx.Client

    def factory(**kwargs):
        kwargs.pop("verify", None)
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(favicons.httpx, "Client", factory)


def test_fetch_with_timeout_accepts_only_small_200_responses(monkeypatch):
    def handler(request):
        if request.url.path == "/favicon.ico":
            return httpx.Response(200, content=PNG)
        if request.url.path == "/big.ico":
            return httpx.Response(200, content=b"\x00" * 2048)
        return httpx.Response(404)

    _mock_client(monkeypatch, handler)

    assert fetch_with_timeout("https://example.com/favicon.ico", 1, 1024) == PNG
    assert fetch_with_timeout("https://example.com/big.ico", 1, 1024) is None
    assert fetch_with_timeout("https://example.com/missing.ico", 1, 1024) is None


def test_fetch_with_timeout_follows_limited_redirects(monkeypatch):
    def handler(request):
        if request.url.path == "/loop":
            return httpx.Response(302, headers={"Location": "/loop"})
        if request.url.path == "/moved":
            return httpx.Response(301, headers={"Location": "/favicon.ico"})
        return httpx.Response(200, content=PNG)

    _mock_client(monkeypatch, handler)

    assert fetch_with_timeout("https://example.com/moved", 1, 1024) == PNG
    assert fetch_with_timeout("https://example.com/loop", 1, 1024, max_redirects=3) is None


def test_fetch_with_timeout_swallows_transport_errors(monkeypatch):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    _mock_client(monkeypatch, handler)

    assert fetch_with_timeout("https://down.example/favicon.ico", 1, 1024) is None
