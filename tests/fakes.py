"""
In-memory stand-in for the parts of the supabase-py client the service uses:
PostgREST-style table queries, storage buckets, and auth (plus admin).
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Callable

from postgrest.exceptions import APIError
from supabase import AuthApiError

PUBLIC_URL = "https://test.supabase.co"

TABLE_DEFAULTS: dict[str, dict[str, Any]] = {
    "posts": {"like_count": 0, "comment_count": 0, "is_public": True, "is_anonymous": False},
    "profiles": {"post_count": 0, "follower_count": 0, "following_count": 0, "is_private": False},
}


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class FakeResponse:
    def __init__(self, data: Any, count: int | None = None) -> None:
        self.data = data
        self.count = count


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str) -> None:
        self.db = db
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.payload: Any = None
        self.filters: list[Callable[[dict], bool]] = []
        self.orders: list[tuple[str, bool]] = []
        self.limit_n: int | None = None
        self.range_: tuple[int, int] | None = None
        self.want_single = False
        self.want_count = False

    # ── operations ────────────────────────────────────────────────────────
    def select(self, columns: str = "*", count: str | None = None) -> "FakeQuery":
        self.op = "select"
        self.columns = columns
        self.want_count = count is not None
        return self

    def insert(self, rows: Any) -> "FakeQuery":
        self.op, self.payload = "insert", rows
        return self

    def upsert(self, rows: Any) -> "FakeQuery":
        self.op, self.payload = "upsert", rows
        return self

    def update(self, values: dict) -> "FakeQuery":
        self.op, self.payload = "update", values
        return self

    def delete(self) -> "FakeQuery":
        self.op = "delete"
        return self

    # ── filters ───────────────────────────────────────────────────────────
    def _add(self, fn: Callable[[dict], bool]) -> "FakeQuery":
        self.filters.append(fn)
        return self

    def eq(self, col: str, val: Any) -> "FakeQuery":
        return self._add(lambda r: _norm(r.get(col)) == _norm(val))

    def neq(self, col: str, val: Any) -> "FakeQuery":
        return self._add(lambda r: _norm(r.get(col)) != _norm(val))

    def gt(self, col: str, val: Any) -> "FakeQuery":
        return self._add(lambda r: r.get(col) is not None and r[col] > val)

    def gte(self, col: str, val: Any) -> "FakeQuery":
        return self._add(lambda r: r.get(col) is not None and r[col] >= val)

    def lt(self, col: str, val: Any) -> "FakeQuery":
        return self._add(lambda r: r.get(col) is not None and r[col] < val)

    def lte(self, col: str, val: Any) -> "FakeQuery":
        return self._add(lambda r: r.get(col) is not None and r[col] <= val)

    def in_(self, col: str, values: list) -> "FakeQuery":
        wanted = {_norm(v) for v in values}
        return self._add(lambda r: _norm(r.get(col)) in wanted)

    def is_(self, col: str, val: Any) -> "FakeQuery":
        target = None if val in (None, "null") else val
        return self._add(lambda r: r.get(col) is target)

    def ilike(self, col: str, pattern: str) -> "FakeQuery":
        rx = re.compile("^" + _like_to_regex(pattern) + "$", re.IGNORECASE | re.DOTALL)
        return self._add(lambda r: r.get(col) is not None and bool(rx.match(str(r[col]))))

    def order(self, col: str, desc: bool = False) -> "FakeQuery":
        self.orders.append((col, desc))
        return self

    def limit(self, n: int) -> "FakeQuery":
        self.limit_n = n
        return self

    def range(self, start: int, end: int) -> "FakeQuery":
        self.range_ = (start, end)
        return self

    def single(self) -> "FakeQuery":
        self.want_single = True
        return self

    # ── execution ─────────────────────────────────────────────────────────
    def _matching(self) -> list[dict]:
        return [r for r in self.db.rows(self.table) if all(f(r) for f in self.filters)]

    def execute(self) -> FakeResponse:
        self.db.calls.append((self.table, self.op))
        if self.op == "insert":
            return FakeResponse([self.db.insert(self.table, row) for row in _as_list(self.payload)])
        if self.op == "upsert":
            return FakeResponse([self.db.upsert(self.table, row) for row in _as_list(self.payload)])
        if self.op == "update":
            rows = self._matching()
            for r in rows:
                r.update(self.payload)
            return FakeResponse([dict(r) for r in rows])
        if self.op == "delete":
            rows = self._matching()
            self.db.tables[self.table] = [r for r in self.db.rows(self.table) if r not in rows]
            return FakeResponse([dict(r) for r in rows])

        rows = self._matching()
        for col, desc in reversed(self.orders):
            rows.sort(key=lambda r: (r.get(col) is None, r.get(col)), reverse=desc)
        total = len(rows)
        if self.range_ is not None:
            rows = rows[self.range_[0]:self.range_[1] + 1]
        if self.limit_n is not None:
            rows = rows[: self.limit_n]
        rows = [_project(r, self.columns) for r in rows]
        if self.want_single:
            if len(rows) != 1:
                raise APIError({
                    "code": "PGRST116",
                    "message": "JSON object requested, multiple (or no) rows returned",
                    "details": f"The result contains {len(rows)} rows",
                    "hint": None,
                })
            return FakeResponse(rows[0], total if self.want_count else None)
        return FakeResponse(rows, total if self.want_count else None)


def _norm(v: Any) -> Any:
    return str(v) if isinstance(v, uuid.UUID) else v


def _like_to_regex(pattern: str) -> str:
    out, chars = [], iter(pattern)
    for ch in chars:
        if ch == "\\":
            out.append(re.escape(next(chars, "\\")))
        elif ch == "%":
            out.append(".*")
        elif ch == "_":
            out.append(".")
        else:
            out.append(re.escape(ch))
    return "".join(out)


def _as_list(payload: Any) -> list[dict]:
    return payload if isinstance(payload, list) else [payload]


def _project(row: dict, columns: str) -> dict:
    if columns.strip() == "*":
        return dict(row)
    wanted = [c.strip() for c in columns.split(",")]
    return {c: row.get(c) for c in wanted}


# ── Storage ────────────────────────────────────────────────────────────────

class FakeBucket:
    def __init__(self, name: str, files: dict[str, bytes]) -> None:
        self.name = name
        self.files = files

    def upload(self, path: str, file: bytes, file_options: dict | None = None) -> dict:
        upsert = (file_options or {}).get("upsert") == "true"
        if path in self.files and not upsert:
            raise RuntimeError("The resource already exists")
        self.files[path] = file
        return {"Key": f"{self.name}/{path}"}

    def get_public_url(self, path: str) -> str:
        return f"{PUBLIC_URL}/storage/v1/object/public/{self.name}/{path}"

    def remove(self, paths: list[str]) -> list[dict]:
        removed = []
        for p in paths:
            if self.files.pop(p, None) is not None:
                removed.append({"name": p})
        return removed

    def list(self, folder: str) -> list[dict]:
        prefix = folder.rstrip("/") + "/"
        return [{"name": p[len(prefix):]} for p in self.files if p.startswith(prefix)]


class FakeStorage:
    def __init__(self) -> None:
        self.buckets: dict[str, dict[str, bytes]] = {}

    def from_(self, bucket: str) -> FakeBucket:
        return FakeBucket(bucket, self.buckets.setdefault(bucket, {}))


# ── Auth ───────────────────────────────────────────────────────────────────

class FakeAdmin:
    def __init__(self, auth: "FakeAuth") -> None:
        self.auth = auth
        self.calls: list[tuple] = []

    def update_user_by_id(self, uid: str, attributes: dict):
        self.calls.append(("update_user_by_id", uid, attributes))
        user = self.auth.users_by_id[uid]
        if "email" in attributes:
            user["email"] = attributes["email"]
        if "password" in attributes:
            user["password"] = attributes["password"]
        return SimpleNamespace(user=_user_obj(user))

    def delete_user(self, uid: str) -> None:
        self.calls.append(("delete_user", uid))
        self.auth.users_by_id.pop(uid, None)
        self.auth.tokens = {t: u for t, u in self.auth.tokens.items() if u != uid}

    def sign_out(self, jwt: str, scope: str = "global") -> None:
        self.calls.append(("sign_out", jwt))
        self.auth.tokens.pop(jwt, None)


def _user_obj(user: dict) -> SimpleNamespace:
    return SimpleNamespace(id=user["id"], email=user["email"], identities=[SimpleNamespace(provider="email")])


class FakeAuth:
    def __init__(self) -> None:
        self.users_by_id: dict[str, dict] = {}
        self.tokens: dict[str, str] = {}
        self.refresh_tokens: dict[str, str] = {}
        self.otps: dict[str, str] = {}
        self.confirm_email = False
        self.calls: list[tuple] = []
        self.admin = FakeAdmin(self)

    # helpers for tests
    def add_user(self, email: str, password: str = "secret123", uid: str | None = None) -> str:
        uid = uid or str(uuid.uuid4())
        self.users_by_id[uid] = {"id": uid, "email": email, "password": password}
        return uid

    def token_for(self, uid: str) -> str:
        token = f"access-{uid}"
        self.tokens[token] = uid
        return token

    def _session(self, uid: str) -> SimpleNamespace:
        access = self.token_for(uid)
        refresh = f"refresh-{uuid.uuid4()}"
        self.refresh_tokens[refresh] = uid
        return SimpleNamespace(
            user=_user_obj(self.users_by_id[uid]),
            session=SimpleNamespace(access_token=access, refresh_token=refresh, expires_at=1_900_000_000),
        )

    def _by_email(self, email: str) -> dict | None:
        return next((u for u in self.users_by_id.values() if u["email"] == email), None)

    # supabase-py surface
    def get_user(self, jwt: str):
        self.calls.append(("get_user", jwt))
        uid = self.tokens.get(jwt)
        if uid is None or uid not in self.users_by_id:
            raise AuthApiError("invalid JWT: token is expired", 401, "bad_jwt")
        return SimpleNamespace(user=_user_obj(self.users_by_id[uid]))

    def sign_up(self, credentials: dict):
        self.calls.append(("sign_up", credentials["email"], credentials.get("options")))
        if self._by_email(credentials["email"]):
            if self.confirm_email:
                # GoTrue hides existing accounts behind a stand-in user when confirmation is on.
                ghost = SimpleNamespace(id=str(uuid.uuid4()), email=credentials["email"], identities=[])
                return SimpleNamespace(user=ghost, session=None)
            raise AuthApiError("User already registered", 422, "user_already_exists")
        uid = self.add_user(credentials["email"], credentials["password"])
        if self.confirm_email:
            return SimpleNamespace(user=_user_obj(self.users_by_id[uid]), session=None)
        return self._session(uid)

    def sign_in_with_password(self, credentials: dict):
        self.calls.append(("sign_in_with_password", credentials["email"]))
        user = self._by_email(credentials["email"])
        if not user or user["password"] != credentials["password"]:
            raise AuthApiError("Invalid login credentials", 400, "invalid_credentials")
        return self._session(user["id"])

    def sign_in_with_otp(self, credentials: dict):
        self.calls.append(("sign_in_with_otp", credentials["email"]))
        self.otps[credentials["email"]] = "123456"
        return SimpleNamespace(user=None, session=None)

    def verify_otp(self, params: dict):
        self.calls.append(("verify_otp", params["email"], params["type"]))
        if self.otps.get(params["email"]) != params["token"]:
            raise AuthApiError("Token has expired or is invalid", 403, "otp_expired")
        user = self._by_email(params["email"])
        uid = user["id"] if user else self.add_user(params["email"], password="")
        return self._session(uid)

    def sign_in_with_id_token(self, credentials: dict):
        self.calls.append(("sign_in_with_id_token", credentials["provider"], credentials.get("nonce")))
        email = f"{credentials['token']}@privaterelay.appleid.com"
        user = self._by_email(email)
        uid = user["id"] if user else self.add_user(email, password="")
        return self._session(uid)

    def refresh_session(self, refresh_token: str):
        self.calls.append(("refresh_session",))
        uid = self.refresh_tokens.pop(refresh_token, None)
        if uid is None:
            raise AuthApiError("Invalid Refresh Token: Refresh Token Not Found", 400, "refresh_token_not_found")
        return self._session(uid)

    def reset_password_for_email(self, email: str, options: dict | None = None) -> None:
        self.calls.append(("reset_password_for_email", email, options))


# ── Client ─────────────────────────────────────────────────────────────────

class FakeSupabase:
    def __init__(self, auth: FakeAuth | None = None, storage: FakeStorage | None = None) -> None:
        self.tables: dict[str, list[dict]] = {}
        self.calls: list[tuple[str, str]] = []
        self.auth = auth or FakeAuth()
        self.storage = storage or FakeStorage()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, table: str) -> list[dict]:
        return self.tables.setdefault(table, [])

    def insert(self, table: str, row: dict) -> dict:
        record = dict(TABLE_DEFAULTS.get(table, {}))
        record.setdefault("id", str(uuid.uuid4()))
        record.setdefault("created_at", now_iso())
        record.update(row)
        self.rows(table).append(record)
        return dict(record)

    def upsert(self, table: str, row: dict) -> dict:
        for existing in self.rows(table):
            if row.get("id") is not None and existing.get("id") == row["id"]:
                existing.update(row)
                return dict(existing)
        return self.insert(table, row)

    def seed(self, table: str, **row: Any) -> dict:
        return self.insert(table, row)
