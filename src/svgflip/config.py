"""Runtime configuration read from the environment (and a local .env file)."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass
class Config:
    """svgflip configuration"""
    proxy_url: Optional[str] = os.getenv("SVGFLIP_PROXY_URL") or None
    probe_timeout: float = float(os.getenv("SVGFLIP_PROBE_TIMEOUT", "5"))
    proxy_timeout: float = float(os.getenv("SVGFLIP_PROXY_TIMEOUT", "5"))
    proxy_host: str = os.getenv("SVGFLIP_PROXY_HOST", "127.0.0.1")
    proxy_port: int = int(os.getenv("SVGFLIP_PROXY_PORT", "8787"))
    log_level: str = os.getenv("SVGFLIP_LOG_LEVEL", "WARNING").upper()
    debug: bool = os.getenv("SVGFLIP_DEBUG", "false").lower() in ["true", "1", "yes"]


config = Config()

__all__ = ["Config", "config"]
