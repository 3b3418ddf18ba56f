#!/usr/bin/env python3
"""
GLOBE command line client.

Usage:
  globe signup <email> <password> <display_name> <userid> [--country JP]
  globe otp send <email>
  globe otp verify <email> <code>
  globe complete <display_name> <userid> [--password PW] [--country JP]
  globe login <email> <password>
  globe logout
  globe session [--watch] [--interval SECONDS]
  globe whoami
  globe check-userid <userid>
  globe post --lat LAT --lng LNG [--text TEXT] [--image PATH] [--place NAME] [--anonymous] [--private]
  globe feed [--limit N]
  globe map <lat> <lng> <span>
  globe like <post_id>
  globe comment <post_id> <text>
  globe comments <post_id>
  globe follow <user_id> | unfollow <user_id>
  globe followers <user_id> | following <user_id>
  globe search <query>
  globe profile <userid>
  globe delete-account --yes

Configuration: ~/.globe/config.json
{
  "api_url": "http://localhost:8000/api/v1",
  "access_token": "...",
  "refresh_token": "..."
}
`login`, `otp verify` and `refresh` write the tokens for you.
"""

__version__ = "1.0.0"

import argparse
import base64
import json
import sys
import time
from pathlib import Path

import httpx

CONFIG_PATH = Path.home() / ".globe" / "config.json"
DEFAULT_API_URL = "http://localhost:8000/api/v1"


def load_config() -> dict:
    if not CONFIG_PATH.exists():
        return {"api_url": DEFAULT_API_URL}
    config = json.loads(CONFIG_PATH.read_text())
    config.setdefault("api_url", DEFAULT_API_URL)
    return config


def save_config(config: dict) -> None:
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_PATH.write_text(json.dumps(config, indent=2))
    CONFIG_PATH.chmod(0o600)


def client(config: dict) -> httpx.Client:
    headers = {"X-App-Version": __version__}
    if config.get("access_token"):
        headers["Authorization"] = f"Bearer {config['access_token']}"
    return httpx.Client(base_url=config["api_url"], headers=headers, timeout=30)


def pretty(data) -> str:
    return json.dumps(data, indent=2, default=str, ensure_ascii=False)


def _check(r: httpx.Response):
    """Exit with the server's message on any error status, else return the JSON body."""
    if r.is_success:
        return r.json() if r.content else None
    try:
        detail = r.json().get("detail", r.text)
    except ValueError:
        detail = r.text
    if r.status_code == 426:
        sys.exit(f"⚠️  UPDATE REQUIRED: {detail}")
    sys.exit(f"❌ {r.status_code}: {detail}")


def _encode_image(path: Path) -> str:
    """Return a data URI for an image file."""
    ext = path.suffix.lower().lstrip(".")
    mime = {"jpg": "image/jpeg", "jpeg": "image/jpeg", "gif": "image/gif",
            "webp": "image/webp", "heic": "image/heic"}.get(ext, "image/png")
    data = base64.b64encode(path.read_bytes()).decode()
    return f"data:{mime};base64,{data}"


def _store_session(config: dict, session: dict) -> None:
    config["access_token"] = session["access_token"]
    config["refresh_token"] = session["refresh_token"]
    config["user_id"] = session["user_id"]
    save_config(config)


def _post_line(p: dict) -> str:
    who = "anonymous" if p["user_id"] == "anonymous" else f"@{p.get('author_userid') or p['user_id']}"
    text = p.get("content") or "(photo)"
    place = f" @ {p['location_name']}" if p.get("location_name") else ""
    return f"📍 {who}: {text}{place}  ♥ {p['like_count']}  💬 {p['comment_count']}  [{p['time_ago']}]  {p['id']}"


# ── Auth ───────────────────────────────────────────────────────────────────

def cmd_signup(args, config):
    payload = {
        "email": args.email,
        "password": args.password,
        "display_name": args.display_name,
        "userid": args.userid,
        "home_country": args.country,
    }
    with client(config) as c:
        res = _check(c.post("/auth/signup", json=payload))
    if res.get("session"):
        _store_session(config, res["session"])
        print(f"✅ Welcome to GLOBE, @{args.userid}!")
    else:
        print("📧 Check your inbox to confirm your email, then run `globe login`.")


def cmd_otp(args, config):
    with client(config) as c:
        if args.otp_cmd == "send":
            res = _check(c.post("/auth/otp/send", json={"email": args.email}))
            print(f"📧 {res['message']}")
            return
        session = _check(c.post("/auth/otp/verify", json={"email": args.email, "token": args.code}))
    _store_session(config, session)
    print("✅ Email verified. Finish with `globe complete <display_name> <userid>`.")


def cmd_complete(args, config):
    payload = {
        "display_name": args.display_name,
        "userid": args.userid,
        "password": args.password,
        "home_country": args.country,
    }
    with client(config) as c:
        profile = _check(c.post("/auth/signup/complete", json=payload))
    print(f"✅ Profile ready: @{profile['userid']} ({profile['display_name']})")


def cmd_login(args, config):
    with client(config) as c:
        session = _check(c.post("/auth/signin", json={"email": args.email, "password": args.password}))
    _store_session(config, session)
    print(f"✅ Signed in as {session.get('email') or session['user_id']}")


def cmd_refresh(args, config):
    if not config.get("refresh_token"):
        sys.exit("Not signed in.")
    with client(config) as c:
        session = _check(c.post("/auth/refresh", json={"refresh_token": config["refresh_token"]}))
    _store_session(config, session)
    print("✅ Session refreshed.")


def cmd_logout(args, config):
    if config.get("access_token"):
        with client(config) as c:
            c.post("/auth/signout")
    for key in ("access_token", "refresh_token", "user_id"):
        config.pop(key, None)
    save_config(config)
    print("👋 Signed out.")


def cmd_session(args, config):
    """Print session validity; with --watch, poll until it lapses."""
    while True:
        with client(config) as c:
            status = _check(c.get("/auth/session"))
        if status["valid"]:
            print(f"🟢 Session valid for {status.get('email') or status['user_id']}")
        else:
            print("🔴 Session expired or missing. Run `globe login`.")
        if not args.watch or not status["valid"]:
            return
        time.sleep(args.interval)


def cmd_check_userid(args, config):
    with client(config) as c:
        res = _check(c.get("/auth/userid-available", params={"userid": args.userid}))
    print(("✅ " if res["available"] else "❌ ") + f"@{res['userid']}: {res['message']}")


# ── Profiles ───────────────────────────────────────────────────────────────

def _print_profile(p: dict) -> None:
    print(f"👤 @{p.get('userid')} — {p.get('display_name') or ''}")
    if p.get("bio"):
        print(f"   {p['bio']}")
    print(f"   Posts: {p['post_count']} | Followers: {p['follower_count']} | Following: {p['following_count']}")
    print(f"   ID: {p['id']}")


def cmd_whoami(args, config):
    with client(config) as c:
        _print_profile(_check(c.get("/profiles/me")))


def cmd_profile(args, config):
    with client(config) as c:
        _print_profile(_check(c.get(f"/profiles/{args.userid}")))


def cmd_search(args, config):
    with client(config) as c:
        results = _check(c.get("/profiles/search", params={"q": args.query}))
    if not results:
        print("No users found.")
        return
    for p in results:
        print(f"@{p['userid']} — {p.get('display_name') or ''}  ({p['id']})")


def cmd_delete_account(args, config):
    if not args.yes:
        sys.exit("This permanently deletes your account, posts and photos. Re-run with --yes to confirm.")
    with client(config) as c:
        res = _check(c.delete("/profiles/me"))
    for key in ("access_token", "refresh_token", "user_id"):
        config.pop(key, None)
    save_config(config)
    print("🗑️  Account deleted.")
    print(pretty(res["deleted"]))


# ── Posts ──────────────────────────────────────────────────────────────────

def cmd_post(args, config):
    payload = {
        "content": args.text,
        "latitude": args.lat,
        "longitude": args.lng,
        "location_name": args.place,
        "is_anonymous": args.anonymous,
        "is_public": not args.private,
    }
    if args.image:
        path = Path(args.image)
        if not path.exists():
            sys.exit(f"File not found: {path}")
        payload["image_base64"] = _encode_image(path)
    with client(config) as c:
        post = _check(c.post("/posts", json=payload))
    print(f"✅ Posted! ID: {post['id']}")
    print(f"   {_post_line(post)}")


def cmd_feed(args, config):
    with client(config) as c:
        posts = _check(c.get("/posts", params={"limit": args.limit}))
    if not posts:
        print("No posts yet.")
        return
    for p in posts:
        print(_post_line(p))


def cmd_map(args, config):
    params = {"lat": args.lat, "lng": args.lng, "lat_delta": args.span, "lng_delta": args.lng_span or args.span}
    with client(config) as c:
        view = _check(c.get("/map/posts", params=params))
    print(f"🗺️  {view['display_mode']} view: {len(view['pins'])} of {view['fetched']} posts shown")
    for pin in view["pins"]:
        offset = f" (+{pin['offset_x']:.0f},{pin['offset_y']:.0f})" if pin["offset_x"] or pin["offset_y"] else ""
        print(f"  {_post_line(pin)}{offset}")
    for cl in view["clusters"]:
        print(f"  ⭕ cluster of {cl['count']} at {cl['latitude']:.3f},{cl['longitude']:.3f}")


def cmd_like(args, config):
    with client(config) as c:
        res = _check(c.post(f"/posts/{args.post_id}/like"))
    print(("♥ Liked" if res["liked"] else "♡ Unliked") + f" ({res['like_count']} likes)")


def cmd_delete_post(args, config):
    with client(config) as c:
        _check(c.delete(f"/posts/{args.post_id}"))
    print("🗑️  Post deleted.")


def cmd_comment(args, config):
    with client(config) as c:
        comment = _check(c.post(f"/posts/{args.post_id}/comments", json={"content": args.text}))
    print(f"💬 Comment added ({comment['id']})")


def cmd_comments(args, config):
    with client(config) as c:
        comments = _check(c.get(f"/posts/{args.post_id}/comments"))
    if not comments:
        print("No comments yet.")
        return
    for cm in comments:
        print(f"@{cm.get('author_userid') or cm['user_id']} [{cm['time_ago']}]: {cm['content']}")


# ── Follows ────────────────────────────────────────────────────────────────

def cmd_follow(args, config):
    with client(config) as c:
        if args.command == "follow":
            _check(c.post(f"/follows/{args.user_id}"))
            print("✅ Following.")
        else:
            _check(c.delete(f"/follows/{args.user_id}"))
            print("✅ Unfollowed.")


def cmd_follow_list(args, config):
    with client(config) as c:
        users = _check(c.get(f"/follows/{args.user_id}/{args.command}"))
    if not users:
        print(f"No {args.command}.")
        return
    for p in users:
        print(f"@{p['userid']} — {p.get('display_name') or ''}")


# ── Argument parsing ───────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="globe", description="GLOBE command line client")
    sub = p.add_subparsers(dest="command", required=True)

    su = sub.add_parser("signup", help="Create an account with email and password")
    su.add_argument("email")
    su.add_argument("password")
    su.add_argument("display_name")
    su.add_argument("userid")
    su.add_argument("--country", default=None, help="Two-letter home country code")

    otp = sub.add_parser("otp", help="Email verification code sign-up")
    otp_sub = otp.add_subparsers(dest="otp_cmd", required=True)
    os_ = otp_sub.add_parser("send", help="Email a 6-digit code")
    os_.add_argument("email")
    ov = otp_sub.add_parser("verify", help="Verify the code and start a session")
    ov.add_argument("email")
    ov.add_argument("code")

    co = sub.add_parser("complete", help="Finish sign-up after OTP or Apple sign-in")
    co.add_argument("display_name")
    co.add_argument("userid")
    co.add_argument("--password", default=None)
    co.add_argument("--country", default=None)

    li = sub.add_parser("login", help="Sign in with email and password")
    li.add_argument("email")
    li.add_argument("password")

    sub.add_parser("refresh", help="Refresh the stored session")
    sub.add_parser("logout", help="Sign out and forget tokens")

    se = sub.add_parser("session", help="Check whether the stored session is valid")
    se.add_argument("--watch", action="store_true", help="Keep polling until the session lapses")
    se.add_argument("--interval", type=float, default=60.0, help="Seconds between checks")

    sub.add_parser("whoami", help="Show your profile")

    cu = sub.add_parser("check-userid", help="Check whether a userid is available")
    cu.add_argument("userid")

    pr = sub.add_parser("profile", help="Show a user's profile")
    pr.add_argument("userid")

    sr = sub.add_parser("search", help="Search users")
    sr.add_argument("query")

    da = sub.add_parser("delete-account", help="Permanently delete your account")
    da.add_argument("--yes", action="store_true")

    po = sub.add_parser("post", help="Post text and/or a photo at a location")
    po.add_argument("--lat", type=float, required=True)
    po.add_argument("--lng", type=float, required=True)
    po.add_argument("--text", default=None, help="Up to 30 characters; longer text is cut")
    po.add_argument("--image", default=None, help="Path to image file")
    po.add_argument("--place", default=None, help="Location name")
    po.add_argument("--anonymous", action="store_true")
    po.add_argument("--private", action="store_true")

    fe = sub.add_parser("feed", help="Recent public posts")
    fe.add_argument("--limit", type=int, default=20)

    mp = sub.add_parser("map", help="Posts visible in a map region")
    mp.add_argument("lat", type=float)
    mp.add_argument("lng", type=float)
    mp.add_argument("span", type=float, help="Latitude span in degrees")
    mp.add_argument("--lng-span", type=float, default=None)

    lk = sub.add_parser("like", help="Like or unlike a post")
    lk.add_argument("post_id")

    dp = sub.add_parser("delete-post", help="Delete one of your posts")
    dp.add_argument("post_id")

    cm = sub.add_parser("comment", help="Comment on a post")
    cm.add_argument("post_id")
    cm.add_argument("text")

    cs = sub.add_parser("comments", help="List comments on a post")
    cs.add_argument("post_id")

    for name in ("follow", "unfollow", "followers", "following"):
        fp = sub.add_parser(name, help=f"{name.capitalize()} by user id")
        fp.add_argument("user_id")

    return p


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    config = load_config()

    dispatch = {
        "signup": cmd_signup,
        "otp": cmd_otp,
        "complete": cmd_complete,
        "login": cmd_login,
        "refresh": cmd_refresh,
        "logout": cmd_logout,
        "session": cmd_session,
        "whoami": cmd_whoami,
        "check-userid": cmd_check_userid,
        "profile": cmd_profile,
        "search": cmd_search,
        "delete-account": cmd_delete_account,
        "post": cmd_post,
        "feed": cmd_feed,
        "map": cmd_map,
        "like": cmd_like,
        "delete-post": cmd_delete_post,
        "comment": cmd_comment,
        "comments": cmd_comments,
        "follow": cmd_follow,
        "unfollow": cmd_follow,
        "followers": cmd_follow_list,
        "following": cmd_follow_list,
    }
    dispatch[args.command](args, config)


if __name__ == "__main__":
    main()
