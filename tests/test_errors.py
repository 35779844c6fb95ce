"""
tests/test_errors.py
"""
from __future__ import annotations

import pytest

from tutorblog.blog import app


@pytest.mark.parametrize("path", ["/", "/blog", "/admin/login"])
def test_public_routes_ok(client, path):
    rv = client.get(path)
    assert rv.status_code == 200


def test_security_headers(client):
    rv = client.get("/")
    assert rv.headers["X-Frame-Options"] == "DENY"
    assert rv.headers["X-Content-Type-Options"] == "nosniff"


def test_404_custom_page(client):
    resp = client.get("/this/route/does/not/exist")
    assert resp.status_code == 404
    assert b"Page not found" in resp.data


def test_500_handler_renders_friendly_page(client, monkeypatch):
    """
    Swap ``index`` for a view that crashes and turn off exception
    propagation so the 500 handler gets to render.
    """
    def _boom():
        raise RuntimeError("kaboom!")

    monkeypatch.setitem(app.view_functions, "index", _boom)
    monkeypatch.setitem(app.config, "PROPAGATE_EXCEPTIONS", False)

    resp = client.get("/")
    assert resp.status_code == 500
    assert b"Internal Server Error" in resp.data
