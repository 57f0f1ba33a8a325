from __future__ import annotations

import sys
import unittest
from pathlib import Path
from unittest import mock

import requests

TESTS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = TESTS_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from svgflip.config import Config
from svgflip.probe import PLATFORM_HEADERS
from svgflip.proxy import create_app, mime_type_for


def _upstream(body: bytes = b"\x89PNG...") -> mock.MagicMock:
    response = mock.MagicMock()
    response.iter_content.return_value = [body]
    return response


class MimeTypeTests(unittest.TestCase):
    def test_extension_mapping(self) -> None:
        self.assertEqual(mime_type_for("https://x/a.jpg"), "image/jpeg")
        self.assertEqual(mime_type_for("https://x/a.JPEG?x=1"), "image/jpeg")
        self.assertEqual(mime_type_for("https://x/a.webp"), "image/webp")
        self.assertEqual(mime_type_for("https://x/a.gif"), "image/gif")

    def test_default_is_png(self) -> None:
        self.assertEqual(mime_type_for("https://mmbiz.qpic.cn/sz_mmbiz_jpg/abc/640?wx_fmt=jpeg"), "image/png")


class ProxyRouteTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = create_app(Config(proxy_timeout=3.0)).test_client()

    def test_missing_url_is_400(self) -> None:
        resp = self.client.get("/proxy-image")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json(), {"code": 400, "msg": "missing image url parameter"})

    def test_streams_upstream_bytes(self) -> None:
        with mock.patch("svgflip.proxy.requests.get", return_value=_upstream(b"abc")) as get:
            resp = self.client.get("/proxy-image", query_string={"url": "https://mmbiz.qpic.cn/a.jpg"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data, b"abc")
        self.assertEqual(resp.mimetype, "image/jpeg")
        self.assertEqual(resp.headers["Cache-Control"], "no-cache, no-store, must-revalidate")
        self.assertEqual(resp.headers["Pragma"], "no-cache")
        self.assertEqual(resp.headers["Expires"], "0")
        get.assert_called_once_with(
            "https://mmbiz.qpic.cn/a.jpg", headers=PLATFORM_HEADERS, timeout=3.0, stream=True
        )

    def test_url_parameter_is_percent_decoded(self) -> None:
        with mock.patch("svgflip.proxy.requests.get", return_value=_upstream()) as get:
            self.client.get("/proxy-image?url=https%3A%2F%2Fmmbiz.qpic.cn%2Fa.png%3Fwx_fmt%3Dpng")
        self.assertEqual(get.call_args.args[0], "https://mmbiz.qpic.cn/a.png?wx_fmt=png")

    def test_fetch_error_is_500(self) -> None:
        with mock.patch("svgflip.proxy.requests.get", side_effect=requests.ConnectionError("down")):
            resp = self.client.get("/proxy-image", query_string={"url": "https://x/a.png"})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.get_json(), {"code": 500, "msg": "failed to fetch image"})

    def test_upstream_error_status_is_500(self) -> None:
        upstream = _upstream()
        upstream.raise_for_status.side_effect = requests.HTTPError("403 Forbidden")
        with mock.patch("svgflip.proxy.requests.get", return_value=upstream):
            resp = self.client.get("/proxy-image", query_string={"url": "https://x/a.png"})
        self.assertEqual(resp.status_code, 500)
        upstream.close.assert_called_once_with()

    def test_cors_is_open(self) -> None:
        with mock.patch("svgflip.proxy.requests.get", return_value=_upstream()):
            resp = self.client.get(
                "/proxy-image",
                query_string={"url": "https://x/a.png"},
                headers={"Origin": "https://editor.example.com"},
            )
        self.assertEqual(resp.headers["Access-Control-Allow-Origin"], "*")


if __name__ == "__main__":
    unittest.main()
