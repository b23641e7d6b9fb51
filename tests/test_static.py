"""Tests for the static file middleware, end to end through the App."""

import logging
import os
from datetime import UTC, datetime, timedelta

import pytest

from perch.app import App
from perch.config import AppConfig
from perch.http.dates import http_date
from perch.http.etag import generate_etag
from perch.middleware.static import StaticHandler, StaticOptions, static_handler
from perch.testing import TestClient


@pytest.fixture
def public_dir(tmp_path):
    """A bundled ``public`` asset tree."""
    public = tmp_path / "public"
    (public / "css").mkdir(parents=True)
    (public / "js").mkdir()
    (public / "img").mkdir()
    (public / "assets").mkdir()
    (public / "empty").mkdir()

    (public / "css" / "site.css").write_text("body { color: red; }")
    (public / "js" / "app.js").write_text("console.log('hello');")
    (public / "img" / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n")
    (public / "assets" / "index.html").write_text("<h1>Assets</h1>")
    (public / "serviceworker.js").write_text("self.addEventListener('fetch', () => {});")
    return public


def _make_app(directory, options: StaticOptions | None = None) -> App:
    app = App()
    app.mount_static(directory, options)

    @app.route("/")
    def index():
        return "home"

    @app.route("/api/data")
    def data():
        return "api"

    return app


def _is_router_404(response) -> bool:
    # The router's 404 carries a text body; the static short-circuit doesn't
    return response.status == 404 and response.body_bytes != b""


# ------------------------------------------------------------------
# Serving
# ------------------------------------------------------------------


class TestStaticFileServing:
    async def test_serves_css_file(self, public_dir) -> None:
        async with TestClient(_make_app(public_dir)) as client:
            response = await client.get("/css/site.css")
            assert response.status == 200
            assert response.content_type.startswith("text/css")
            assert response.text == "body { color: red; }"

    async def test_serves_binary_file(self, public_dir) -> None:
        async with TestClient(_make_app(public_dir)) as client:
            response = await client.get("/img/logo.png")
            assert response.status == 200
            assert response.content_type == "image/png"
            assert response.body_bytes == b"\x89PNG\r\n\x1a\n"

    async def test_sets_last_modified_and_length(self, public_dir) -> None:
        mtime = datetime.fromtimestamp(os.stat(public_dir / "css" / "site.css").st_mtime, tz=UTC)

        async with TestClient(_make_app(public_dir)) as client:
            response = await client.get("/css/site.css")
            assert response.header("last-modified") == http_date(mtime)
            assert response.header("content-length") == "20"
            assert response.header("accept-ranges") == "bytes"

    async def test_no_cache_headers_by_default(self, public_dir) -> None:
        async with TestClient(_make_app(public_dir)) as client:
            response = await client.get("/css/site.css")
            assert response.header("expires") is None
            assert response.header("etag") is None

    async def test_head_sends_headers_only(self, public_dir) -> None:
        async with TestClient(_make_app(public_dir)) as client:
            response = await client.head("/css/site.css")
            assert response.status == 200
            assert response.body_bytes == b""
            assert response.header("content-length") == "20"
            assert response.content_type.startswith("text/css")

    async def test_relative_directory_resolves_against_work_path(self, public_dir) -> None:
        app = App(AppConfig(work_path=public_dir.parent))
        app.mount_static("public")

        async with TestClient(app) as client:
            response = await client.get("/js/app.js")
            assert response.status == 200
            assert "console.log" in response.text

    async def test_dot_segments_stay_inside_root(self, public_dir) -> None:
        (public_dir.parent / "secret.txt").write_text("top secret")

        async with TestClient(_make_app(public_dir)) as client:
            response = await client.get("/css/../../secret.txt")
            assert response.status == 404
            assert "top secret" not in response.text


# ------------------------------------------------------------------
# Fall-through
# ------------------------------------------------------------------


class TestStaticFallthrough:
    async def test_post_request_falls_through(self, public_dir) -> None:
        app = App()
        app.mount_static(public_dir)

        @app.route("/css/site.css", methods=["POST"])
        def upload():
            return ("uploaded", 201)

        async with TestClient(app) as client:
            response = await client.post("/css/site.css")
            assert response.status == 201
            assert response.text == "uploaded"

    async def test_route_still_reachable(self, public_dir) -> None:
        async with TestClient(_make_app(public_dir)) as client:
            response = await client.get("/api/data")
            assert response.status == 200
            assert response.text == "api"

    async def test_missing_file_outside_known_entries_falls_through(self, public_dir) -> None:
        async with TestClient(_make_app(public_dir)) as client:
            response = await client.get("/unknown/missing.png")
            assert _is_router_404(response)

    async def test_missing_top_level_file_falls_through(self, public_dir) -> None:
        async with TestClient(_make_app(public_dir)) as client:
            response = await client.get("/missing.txt")
            assert _is_router_404(response)

    async def test_declined_request_reaches_next_unmodified(self, public_dir) -> None:
        seen = []
        app = App()
        app.mount_static(public_dir)

        @app.route("/unknown/thing")
        def thing(request):
            seen.append(request)
            return "thing"

        async with TestClient(app) as client:
            response = await client.get("/unknown/thing", headers={"X-Request-Id": "1"})

        assert response.text == "thing"
        assert seen[0].path == "/unknown/thing"
        assert seen[0].headers.get("x-request-id") == "1"


# ------------------------------------------------------------------
# Prefix
# ------------------------------------------------------------------


class TestStaticPrefix:
    async def test_serves_under_prefix(self, public_dir) -> None:
        app = _make_app(public_dir, StaticOptions(prefix="/assets-root"))
        async with TestClient(app) as client:
            response = await client.get("/assets-root/css/site.css")
            assert response.status == 200
            assert response.text == "body { color: red; }"

    async def test_prefix_is_normalized(self, public_dir) -> None:
        app = _make_app(public_dir, StaticOptions(prefix="static/"))
        async with TestClient(app) as client:
            response = await client.get("/static/js/app.js")
            assert response.status == 200

    async def test_path_without_prefix_falls_through(self, public_dir) -> None:
        app = _make_app(public_dir, StaticOptions(prefix="/static"))
        async with TestClient(app) as client:
            response = await client.get("/css/site.css")
            assert _is_router_404(response)

    async def test_partial_segment_does_not_match(self, tmp_path) -> None:
        site = tmp_path / "site"
        (site / "lic").mkdir(parents=True)
        (site / "lic" / "x").write_text("nope")
        app = _make_app(site, StaticOptions(prefix="/pub"))

        async with TestClient(app) as client:
            response = await client.get("/public/x")
            assert _is_router_404(response)
            response = await client.get("/pub/lic/x")
            assert response.status == 200

    async def test_bare_prefix_redirects_to_slash(self, public_dir) -> None:
        app = _make_app(public_dir, StaticOptions(prefix="/static"))
        async with TestClient(app) as client:
            response = await client.get("/static")
            assert response.status == 302
            assert response.header("location") == "/static/"


# ------------------------------------------------------------------
# Known public entries
# ------------------------------------------------------------------


class TestKnownPublicEntries:
    async def test_missing_file_under_known_entry_is_bare_404(self, public_dir) -> None:
        async with TestClient(_make_app(public_dir)) as client:
            response = await client.get("/img/missing.png")
            assert response.status == 404
            assert response.body_bytes == b""
            assert response.content_type is None

    @pytest.mark.parametrize("path", ["/css/gone.css", "/js/x/y.js", "/vendor/lib.js"])
    async def test_every_known_entry_short_circuits(self, public_dir, path) -> None:
        async with TestClient(_make_app(public_dir)) as client:
            response = await client.get(path)
            assert response.status == 404
            assert response.body_bytes == b""

    async def test_known_entry_never_reaches_router(self, public_dir) -> None:
        app = App()
        app.mount_static(public_dir)

        @app.route("/img/missing.png")
        def shadow():
            return "router"

        async with TestClient(app) as client:
            response = await client.get("/img/missing.png")
            assert response.status == 404
            assert response.text == ""

    async def test_other_directory_names_fall_through(self, tmp_path) -> None:
        static = tmp_path / "static"
        (static / "img").mkdir(parents=True)

        async with TestClient(_make_app(static)) as client:
            response = await client.get("/img/missing.png")
            assert _is_router_404(response)

    async def test_known_entries_apply_after_prefix(self, public_dir) -> None:
        app = _make_app(public_dir, StaticOptions(prefix="/assets-root"))
        async with TestClient(app) as client:
            response = await client.get("/assets-root/css/missing.css")
            assert response.status == 404
            assert response.body_bytes == b""


# ------------------------------------------------------------------
# Directories
# ------------------------------------------------------------------


class TestStaticDirectories:
    async def test_directory_without_slash_redirects(self, public_dir) -> None:
        async with TestClient(_make_app(public_dir)) as client:
            response = await client.get("/assets")
            assert response.status == 302
            assert response.header("location") == "/assets/"

    async def test_non_ascii_directory_redirect_is_percent_encoded(self, public_dir) -> None:
        (public_dir / "文档").mkdir()

        async with TestClient(_make_app(public_dir)) as client:
            response = await client.get("/文档")
            assert response.status == 302
            assert response.header("location") == "/%E6%96%87%E6%A1%A3/"

    async def test_directory_with_slash_serves_index(self, public_dir) -> None:
        async with TestClient(_make_app(public_dir)) as client:
            response = await client.get("/assets/")
            assert response.status == 200
            assert response.text == "<h1>Assets</h1>"
            assert response.content_type.startswith("text/html")

    async def test_directory_without_index_falls_through(self, public_dir) -> None:
        async with TestClient(_make_app(public_dir)) as client:
            response = await client.get("/empty/")
            assert _is_router_404(response)

    async def test_root_serves_index(self, public_dir) -> None:
        (public_dir / "index.html").write_text("<h1>Home</h1>")
        app = App()
        app.mount_static(public_dir)

        async with TestClient(app) as client:
            response = await client.get("/")
            assert response.status == 200
            assert response.text == "<h1>Home</h1>"

    async def test_custom_index_file(self, public_dir) -> None:
        (public_dir / "assets" / "default.htm").write_text("default")
        app = _make_app(public_dir, StaticOptions(index_file="default.htm"))

        async with TestClient(app) as client:
            response = await client.get("/assets/")
            assert response.text == "default"


# ------------------------------------------------------------------
# Caching
# ------------------------------------------------------------------


class TestStaticCaching:
    @staticmethod
    def _expected_etag(path) -> str:
        st = os.stat(path)
        mtime = datetime.fromtimestamp(st.st_mtime, tz=UTC)
        return generate_etag(str(st.st_size), path.name, http_date(mtime))

    async def test_sets_expires_and_etag(self, public_dir) -> None:
        app = _make_app(public_dir, StaticOptions(expires_after=timedelta(hours=1)))
        before = datetime.now(UTC).replace(microsecond=0)

        async with TestClient(app) as client:
            response = await client.get("/css/site.css")

        assert response.status == 200
        assert response.header("etag") == self._expected_etag(public_dir / "css" / "site.css")
        expires = datetime.strptime(response.header("expires"), "%a, %d %b %Y %H:%M:%S GMT")
        expires = expires.replace(tzinfo=UTC)
        assert before + timedelta(hours=1) <= expires <= before + timedelta(hours=1, seconds=5)

    async def test_matching_if_none_match_returns_304(self, public_dir) -> None:
        app = _make_app(public_dir, StaticOptions(expires_after=timedelta(hours=1)))
        tag = self._expected_etag(public_dir / "css" / "site.css")

        async with TestClient(app) as client:
            response = await client.get("/css/site.css", headers={"If-None-Match": tag})

        assert response.status == 304
        assert response.body_bytes == b""
        assert response.header("etag") == tag
        assert response.header("content-length") is None

    async def test_other_if_none_match_serves_normally(self, public_dir) -> None:
        app = _make_app(public_dir, StaticOptions(expires_after=timedelta(hours=1)))

        async with TestClient(app) as client:
            response = await client.get("/css/site.css", headers={"If-None-Match": "stale"})

        assert response.status == 200
        assert response.text == "body { color: red; }"
        assert response.header("expires") is not None
        assert response.header("etag") is not None

    async def test_index_file_is_tagged_by_its_own_name(self, public_dir) -> None:
        app = _make_app(public_dir, StaticOptions(expires_after=timedelta(minutes=5)))

        async with TestClient(app) as client:
            response = await client.get("/assets/")

        assert response.header("etag") == self._expected_etag(public_dir / "assets" / "index.html")

    async def test_repeated_get_is_identical(self, public_dir) -> None:
        app = _make_app(public_dir, StaticOptions(expires_after=timedelta(hours=1)))

        async with TestClient(app) as client:
            first = await client.get("/js/app.js")
            second = await client.get("/js/app.js")

        def stable(response):
            return [(k, v) for k, v in response.headers if k != "expires"]

        assert first.status == second.status == 200
        assert first.body_bytes == second.body_bytes
        assert first.content_type == second.content_type
        assert stable(first) == stable(second)


# ------------------------------------------------------------------
# Logging
# ------------------------------------------------------------------


class TestStaticLogging:
    async def test_logs_served_path(self, public_dir, caplog) -> None:
        caplog.set_level(logging.INFO, logger="perch.static")
        async with TestClient(_make_app(public_dir)) as client:
            await client.get("/css/site.css")

        assert any("Serving /css/site.css" in r.getMessage() for r in caplog.records)

    async def test_skip_logging_is_silent(self, public_dir, caplog) -> None:
        caplog.set_level(logging.INFO, logger="perch.static")
        app = _make_app(public_dir, StaticOptions(skip_logging=True))
        async with TestClient(app) as client:
            await client.get("/css/site.css")

        assert not [r for r in caplog.records if r.name == "perch.static"]


# ------------------------------------------------------------------
# Mounting
# ------------------------------------------------------------------


class TestStaticMounts:
    async def test_custom_overrides_win(self, public_dir, tmp_path) -> None:
        custom_public = tmp_path / "custom" / "public" / "css"
        custom_public.mkdir(parents=True)
        (custom_public / "site.css").write_text("body { color: blue; }")

        app = App(AppConfig(work_path=tmp_path))
        app.mount_custom()
        app.mount_static(public_dir)

        async with TestClient(app) as client:
            overridden = await client.get("/css/site.css")
            bundled = await client.get("/js/app.js")

        assert overridden.text == "body { color: blue; }"
        assert bundled.status == 200

    async def test_custom_miss_under_known_entry_reaches_bundled(
        self, public_dir, tmp_path
    ) -> None:
        (tmp_path / "custom" / "public").mkdir(parents=True)
        app = App(AppConfig(work_path=tmp_path))
        custom = app.mount_custom()
        app.mount_static(public_dir)

        async with TestClient(app) as client:
            served = await client.get("/css/site.css")
            missing = await client.get("/css/missing.css")

        assert custom.options.directory == tmp_path / "custom"
        assert served.text == "body { color: red; }"
        assert missing.status == 404
        assert missing.body_bytes == b""

    async def test_static_handler_wraps_plain_callable(self, public_dir) -> None:
        calls = []

        async def fallback(request):
            calls.append(request.path)
            from perch.http.response import Response

            return Response("fallback", status=404)

        handler = static_handler(public_dir)(fallback)

        from perch.http.request import Request

        served = await handler(Request(method="GET", path="/css/site.css"))
        declined = await handler(Request(method="GET", path="/nope.txt"))

        assert served.status == 200
        assert declined.text == "fallback"
        assert calls == ["/nope.txt"]

    def test_handler_options_are_normalized_at_construction(self, public_dir) -> None:
        handler = StaticHandler(public_dir, StaticOptions(prefix="assets/", index_file=""))
        assert handler.options.prefix == "/assets"
        assert handler.options.index_file == "index.html"
        assert handler.options.file_system is not None
