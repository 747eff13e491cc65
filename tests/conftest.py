from __future__ import annotations

import sys
from pathlib import Path

import pytest
from nacl.signing import SigningKey


PROJECT_ROOT = Path(__file__).resolve().parents[1]
API_ROOT = PROJECT_ROOT / "api"
if str(API_ROOT) not in sys.path:
	sys.path.insert(0, str(API_ROOT))

import discord_interactions  # noqa: E402


ADMIN_ID = "1356193903497318542"


@pytest.fixture
def di(monkeypatch):
	monkeypatch.setattr(discord_interactions, "ADMIN_USER_IDS", frozenset({ADMIN_ID}))
	monkeypatch.setattr(discord_interactions, "ADMIN_TOKEN", "test-token")
	monkeypatch.setattr(discord_interactions, "ADMIN_BASE", "https://admin.example")
	return discord_interactions


@pytest.fixture
def signing_key(di, monkeypatch):
	key = SigningKey.generate()
	monkeypatch.setattr(di, "DISCORD_PUBLIC_KEY", key.verify_key.encode().hex())
	return key


@pytest.fixture
def admin_calls(di, monkeypatch):
	"""Records admin_post calls; set `.result` to change the reply."""

	class Recorder(list):
		result = (True, {})

	calls = Recorder()

	def _fake(path, payload):
		calls.append((path, payload))
		return calls.result

	monkeypatch.setattr(di, "admin_post", _fake)
	return calls


def command(name, options=None, user_id=ADMIN_ID, member=True):
	interaction = {"type": 2, "data": {"name": name, "options": options or []}}
	if member:
		interaction["member"] = {"user": {"id": user_id}}
	else:
		interaction["user"] = {"id": user_id}
	return interaction
