"""
Map request hostnames to the site whose content they show.
"""

from __future__ import annotations

from typing import Optional

from portal.config import Settings


def normalize_host(host: Optional[str]) -> str:
    """``"Www.Example.com:8443"`` -> ``"www.example.com"``."""
    if not host:
        return ""
    host = host.strip().lower()
    if host.startswith("["):
        # IPv6 literal, keep the brackets and drop the port.
        return host.split("]", 1)[0] + "]"
    return host.rsplit(":", 1)[0] if ":" in host else host


def resolve_site_id(host: Optional[str], settings: Settings) -> str:
    hosts = {normalize_host(name): site for name, site in settings.site_hosts.items()}
    return hosts.get(normalize_host(host), settings.default_site_id)
