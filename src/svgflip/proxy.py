"""Small image proxy for hotlink-protected hosts.

The platform's image CDN refuses requests without its own Referer, so the
ratio probe (and browsers previewing converted markup) fetch through this
service instead.
"""
from __future__ import annotations

import logging
import posixpath
from typing import Optional
from urllib.parse import urlparse

import requests
from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from .config import Config
from .config import config as default_config
from .probe import PLATFORM_HEADERS

logger = logging.getLogger(__name__)

MIME_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "gif": "image/gif",
}
DEFAULT_MIME_TYPE = "image/png"

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def mime_type_for(url: str) -> str:
    ext = posixpath.splitext(urlparse(url).path)[1].lstrip(".").lower()
    return MIME_TYPES.get(ext, DEFAULT_MIME_TYPE)


def _fetch_failed(url: str, exc: Exception):
    logger.warning("proxy fetch failed for %s: %s", url, exc)
    return jsonify({"code": 500, "msg": "failed to fetch image"}), 500


def create_app(config: Optional[Config] = None) -> Flask:
    cfg = config or default_config
    app = Flask(__name__)
    CORS(
        app,
        origins="*",
        send_wildcard=True,
        methods=["GET"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept"],
    )

    @app.route("/proxy-image", methods=["GET"])
    def proxy_image():
        url = request.args.get("url", "")
        if not url:
            return jsonify({"code": 400, "msg": "missing image url parameter"}), 400

        try:
            upstream = requests.get(url, headers=PLATFORM_HEADERS, timeout=cfg.proxy_timeout, stream=True)
        except requests.RequestException as exc:
            return _fetch_failed(url, exc)
        try:
            upstream.raise_for_status()
        except requests.RequestException as exc:
            upstream.close()
            return _fetch_failed(url, exc)

        def _generate():
            try:
                for chunk in upstream.iter_content(chunk_size=8192):
                    if chunk:
                        yield chunk
            finally:
                upstream.close()

        return Response(_generate(), mimetype=mime_type_for(url), headers=NO_CACHE_HEADERS)

    return app


def serve(host: Optional[str] = None, port: Optional[int] = None, config: Optional[Config] = None) -> None:
    cfg = config or default_config
    app = create_app(cfg)
    app.run(host=host or cfg.proxy_host, port=port or cfg.proxy_port, debug=cfg.debug)


__all__ = ["create_app", "serve", "mime_type_for", "MIME_TYPES"]
