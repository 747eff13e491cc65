from __future__ import annotations

import importlib


def test_bad_admin_timeout_falls_back_to_default(di, monkeypatch):
	monkeypatch.setenv("ADMIN_TIMEOUT", "soon")
	try:
		module = importlib.reload(di)
		assert module.ADMIN_TIMEOUT == 10.0
	finally:
		monkeypatch.delenv("ADMIN_TIMEOUT")
		importlib.reload(di)


def test_admin_timeout_from_env(di, monkeypatch):
	monkeypatch.setenv("ADMIN_TIMEOUT", " 2.5 ")
	try:
		assert importlib.reload(di).ADMIN_TIMEOUT == 2.5
	finally:
		monkeypatch.delenv("ADMIN_TIMEOUT")
		importlib.reload(di)
