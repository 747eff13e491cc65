# api/discord_interactions.py
# Discord Interactions handler: /link, /unlink -> Twitch admin API
from http.server import BaseHTTPRequestHandler
from enum import Enum
import os, re, json, sys, http.client, urllib.request, urllib.error
from nacl.signing import VerifyKey
from nacl.exceptions import BadSignatureError

def _clean(v: str) -> str:
    return (v or "").strip().strip('"').strip("'")

def _split_ids(raw: str) -> frozenset:
    return frozenset(p for p in re.split(r"[\s,]+", raw) if p)

def _float(raw: str, default: float) -> float:
    try: return float(raw)
    except ValueError: return default

DISCORD_APPLICATION_ID = _clean(os.getenv("DISCORD_APPLICATION_ID", ""))
DISCORD_PUBLIC_KEY     = _clean(os.getenv("DISCORD_PUBLIC_KEY", ""))
ADMIN_TOKEN            = _clean(os.getenv("ADMIN_TOKEN", ""))
ADMIN_BASE             = _clean(os.getenv("ADMIN_BASE", "https://twitch.budgiebailey.workers.dev")).rstrip("/")
ADMIN_USER_IDS         = _split_ids(_clean(os.getenv("ADMIN_USER_IDS", "")))
ADMIN_TIMEOUT          = _float(_clean(os.getenv("ADMIN_TIMEOUT", "10")), 10.0)

PING, PONG = 1, 1
APP_CMD = 2
CH_MSG = 4
STRING, USER = 3, 6  # option types

ROOT_PATHS = ("/", "/api/discord_interactions")

# --- Command metadata (shared with scripts/register_commands.py) ---
LINK_COMMAND = {
    "name": "link",
    "description": "Links a Discord User to their Twitch Profile. Provisions access for stream alerts.",
    "options": [
        {"name": "twitch_login", "description": "Twitch username (login) to link", "type": STRING, "required": True},
        {"name": "discord_user", "description": "Discord user to link to this Twitch account.", "type": USER, "required": True},
    ],
}

UNLINK_COMMAND = {
    "name": "unlink",
    "description": "Unlinks a Discord User from their Twitch Profile. Unprovisions access for stream alerts.",
    "options": [
        {"name": "twitch_login", "description": "Twitch username (login) to unlink", "type": STRING, "required": False},
        {"name": "broadcaster_id", "description": "Twitch broadcaster ID to unlink (alternative to login)", "type": STRING, "required": False},
    ],
}

COMMANDS = [LINK_COMMAND, UNLINK_COMMAND]

class Command(Enum):
    LINK = LINK_COMMAND["name"]
    UNLINK = UNLINK_COMMAND["name"]

    @classmethod
    def parse(cls, name):
        key = str(name or "").strip().lower()
        for cmd in cls:
            if cmd.value == key:
                return cmd
        return None

# --- Response helpers ---
def respond_json(h, obj, status=200):
    h.send_response(status); h.send_header("Content-Type","application/json")
    h.end_headers(); h.wfile.write(json.dumps(obj).encode("utf-8"))

def respond_text(h, text: str, status=200):
    h.send_response(status); h.send_header("Content-Type","text/plain;charset=UTF-8")
    h.end_headers(); h.wfile.write(text.encode("utf-8"))

def message(content: str):
    return {"type": CH_MSG, "data": {"content": content}}

def verify_signature(body: bytes, sig_hex: str, ts: str) -> bool:
    if not DISCORD_PUBLIC_KEY:
        print("[interactions] DISCORD_PUBLIC_KEY is not set", file=sys.stderr)
        return False
    try:
        VerifyKey(bytes.fromhex(DISCORD_PUBLIC_KEY)).verify(ts.encode() + body, bytes.fromhex(sig_hex))
        return True
    except (BadSignatureError, ValueError, TypeError):
        return False

# --- Interaction helpers ---
def get_invoker_id(interaction: dict) -> str:
    member = interaction.get("member") or {}
    uid = (member.get("user") or {}).get("id") or (interaction.get("user") or {}).get("id")
    return "" if uid is None else str(uid)

def is_authorized(interaction: dict, allowed=None) -> bool:
    uid = get_invoker_id(interaction)
    return bool(uid) and uid in (ADMIN_USER_IDS if allowed is None else allowed)

def get_option(interaction: dict, name: str):
    opts = (interaction.get("data") or {}).get("options")
    if not isinstance(opts, list): return None
    for o in opts:
        if isinstance(o, dict) and o.get("name") == name:
            return o.get("value")
    return None

def get_login_option(interaction: dict):
    # "login" is the name the command was first registered with
    return get_option(interaction, "twitch_login") or get_option(interaction, "login")

# --- Admin API ---
def admin_post(path: str, payload: dict):
    """
    POST JSON to the Twitch admin API.
    Returns (True, response_dict) on 2xx, otherwise (False, error_text).
    A non-JSON or empty response body decodes to {}.
    """
    url = f"{ADMIN_BASE}{path}"
    req = urllib.request.Request(
        url, data=json.dumps(payload).encode("utf-8"), method="POST",
        headers={
            "Authorization": f"Bearer {ADMIN_TOKEN}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "TwitchLinkBot (discord-interactions, 1.0)",
        },
    )
    try:
        status, reason, raw = _send(req)
    except (OSError, http.client.HTTPException) as e:
        err = getattr(e, "reason", None) or e
        print(f"[admin] POST {path} failed: {err}", file=sys.stderr)
        return False, str(err)

    data = _decode(raw)
    print(f"[admin] POST {path} -> {status}")
    if not 200 <= status < 300:
        print(f"[admin] POST {path} body: {json.dumps(data)}", file=sys.stderr)
        return False, f"HTTP {status} {reason}: {json.dumps(data)}"
    return True, data

def _send(req):
    try:
        with urllib.request.urlopen(req, timeout=ADMIN_TIMEOUT) as r:
            return r.status, r.reason, r.read()
    except urllib.error.HTTPError as e:
        return e.code, e.reason, e.read()

def _decode(raw: bytes) -> dict:
    try: data = json.loads((raw or b"").decode("utf-8"))
    except (ValueError, UnicodeDecodeError): return {}
    return data if isinstance(data, dict) else {}

# --- Commands ---
def handle_link(interaction: dict):
    login = str(get_login_option(interaction) or "").strip().lower()
    discord_user_id = str(get_option(interaction, "discord_user") or "").strip()
    if not login or not discord_user_id:
        return message("❌ Missing required options. Example: `/link twitch_login:cxrys_ discord_user:@User`")

    ok, res = admin_post("/admin/register", {"login": login, "discord_user_id": discord_user_id})
    if not ok:
        return message(f"❌ Link failed: `{res}`")

    created = res.get("created")
    created = f" (created: {', '.join(str(c) for c in created)})" if isinstance(created, list) and created else ""
    twitch_id = res.get("twitch_id")
    return message(
        f"✅ Linked **{login}** → <@{discord_user_id}>\n"
        f"Twitch ID: `{'unknown' if twitch_id is None else twitch_id}`{created}"
    )

def handle_unlink(interaction: dict):
    login = str(get_login_option(interaction) or "").strip().lower()
    broadcaster_id = str(get_option(interaction, "broadcaster_id") or "").strip()
    if not login and not broadcaster_id:
        return message(
            "❌ Provide `twitch_login` **or** `broadcaster_id`.\n"
            "Examples:\n• `/unlink twitch_login:cxrys_`\n• `/unlink broadcaster_id:564886943`"
        )

    payload = {}
    if login: payload["login"] = login
    if broadcaster_id: payload["broadcaster_id"] = broadcaster_id

    ok, res = admin_post("/admin/unregister", payload)
    if not ok:
        return message(f"❌ Unlink failed: `{res}`")

    bid = res.get("broadcaster_id") or payload.get("broadcaster_id") or "unknown"
    return message(f"✅ Unlinked Twitch ID `{bid}` (EventSub removed, mapping cleared)")

COMMAND_HANDLERS = {
    Command.LINK: handle_link,
    Command.UNLINK: handle_unlink,
}

def process_interaction(interaction: dict):
    """Returns (status, response_body) for a verified interaction."""
    itype = interaction.get("type")
    if itype == PING:
        return 200, {"type": PONG}

    if itype == APP_CMD:
        who = get_invoker_id(interaction)
        if not is_authorized(interaction):
            print(f"[interactions] unauthorised invoker {who or '(none)'}")
            return 200, message(f"⛔ Not authorised (<@{who}>).")

        name = (interaction.get("data") or {}).get("name")
        cmd = Command.parse(name)
        if cmd is not None:
            print(f"[interactions] /{cmd.value} by {who}")
            return 200, COMMAND_HANDLERS[cmd](interaction)
        print(f"[interactions] unknown command {name!r}", file=sys.stderr)

    return 400, {"error": "Unknown Type"}

def handle_post(headers, body: bytes):
    """Verifies the signature over the raw body before anything is parsed."""
    sig = headers.get("X-Signature-Ed25519", "") or ""; ts = headers.get("X-Signature-Timestamp", "") or ""
    if not (sig and ts and verify_signature(body, sig, ts)):
        return 401, "Bad request signature."

    try: interaction = json.loads(body.decode("utf-8"))
    except (ValueError, UnicodeDecodeError): return 400, {"error": "bad json"}
    if not isinstance(interaction, dict):
        return 400, {"error": "bad json"}
    return process_interaction(interaction)

# --- HTTP handler ---
class handler(BaseHTTPRequestHandler):
    def _is_root(self) -> bool:
        return self.path.split("?", 1)[0] in ROOT_PATHS

    def do_GET(self):
        if not self._is_root(): return respond_text(self, "Not Found.", 404)
        return respond_text(self, f"👋 {DISCORD_APPLICATION_ID}")

    def do_POST(self):
        if not self._is_root(): return respond_text(self, "Not Found.", 404)
        body = self.rfile.read(int(self.headers.get("Content-Length","0") or 0))
        status, obj = handle_post(self.headers, body)
        if isinstance(obj, str): return respond_text(self, obj, status)
        return respond_json(self, obj, status)

    def _not_found(self):
        return respond_text(self, "Not Found.", 404)

    do_PUT = do_PATCH = do_DELETE = do_HEAD = do_OPTIONS = _not_found
