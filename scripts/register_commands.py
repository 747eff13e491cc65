# scripts/register_commands.py
# Register the /link and /unlink commands for your application.
# Usage (locally): set DISCORD_BOT_TOKEN, DISCORD_APPLICATION_ID (optionally DISCORD_GUILD_ID) then run.
import os, sys, json, urllib.request, urllib.error
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "api"))
from discord_interactions import COMMANDS  # noqa: E402

def commands_url(app_id: str, guild_id: str = "") -> str:
    base = f"https://discord.com/api/v10/applications/{app_id}"
    return f"{base}/guilds/{guild_id}/commands" if guild_id else f"{base}/commands"

def register(url: str, token: str, command: dict):
    req = urllib.request.Request(url, data=json.dumps(command).encode("utf-8"),
                                 headers={"Content-Type":"application/json","Authorization":f"Bot {token}"},
                                 method="POST")
    try:
        with urllib.request.urlopen(req, timeout=10) as resp:
            print(resp.read().decode("utf-8"))
        return True
    except urllib.error.HTTPError as e:
        print(f"[register] /{command['name']} HTTPError {e.code} {e.read().decode(errors='replace')}", file=sys.stderr)
        return False

def main():
    token = os.environ["DISCORD_BOT_TOKEN"]
    url = commands_url(os.environ["DISCORD_APPLICATION_ID"], os.getenv("DISCORD_GUILD_ID", "").strip())
    failed = [c["name"] for c in COMMANDS if not register(url, token, c)]
    for c in COMMANDS:
        if c["name"] not in failed: print(f"Registered /{c['name']} command")
    return 1 if failed else 0

if __name__ == "__main__":
    sys.exit(main())
