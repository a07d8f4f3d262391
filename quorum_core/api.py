"""
REST / HTTP API for the Quorum schedule service.

Built on ``aiohttp``.  Registry operations take per-schedule locks and may
wait on the ledger, so every handler runs them in the default executor.

Endpoints
---------
GET  /health                          Liveness + registry summary
GET  /schedules                       List schedules (optional ?state=pending)
GET  /schedule/{schedule_id}          Query one schedule
POST /schedule                        Create a scheduled transfer
POST /schedule/{schedule_id}/sign     Add a member signature
POST /schedule/{schedule_id}/delete   Admin deletes a pending schedule
POST /sweep                           Run an expiry sweep now
GET  /balance/{account_id}            Ledger balance

Errors
------
NotFound -> 404, Unauthorized -> 403, ScheduleClosed -> 409,
PersistenceFailed / ExecutionFailed -> 502, other validation -> 400.

Usage:
    api = ScheduleAPI(registry, host="127.0.0.1", port=8080)
    await api.start()    # call inside existing event loop
    ...
    await api.stop()
"""

from __future__ import annotations

import asyncio
import functools
import hmac
import json
import logging
from typing import TYPE_CHECKING, Any

from aiohttp import web

from quorum_core.errors import (
    ExecutionFailed,
    LedgerError,
    NotFound,
    PersistenceFailed,
    ScheduleClosed,
    ScheduleError,
    Unauthorized,
)
from quorum_core.key_set import KeySet
from quorum_core.schedule import ScheduleState
from quorum_core.transfer import TransferPayload

if TYPE_CHECKING:
    from quorum_core.config import APIConfig
    from quorum_core.registry import ScheduleRegistry

logger = logging.getLogger("quorum_api")

_ERROR_STATUS: list[tuple[type[Exception], type[web.HTTPException]]] = [
    (NotFound, web.HTTPNotFound),
    (Unauthorized, web.HTTPForbidden),
    (ScheduleClosed, web.HTTPConflict),
    (PersistenceFailed, web.HTTPBadGateway),
    (ExecutionFailed, web.HTTPBadGateway),
    (ScheduleError, web.HTTPBadRequest),
    (ValueError, web.HTTPBadRequest),
]


# ═══════════════════════════════════════════════════════════════════
#  Input helpers
# ═══════════════════════════════════════════════════════════════════

def _safe_int(value: Any, name: str = "value") -> int:
    """Convert *value* to int, rejecting non-integer input."""
    if isinstance(value, bool):
        raise web.HTTPBadRequest(text=f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise web.HTTPBadRequest(text=f"{name} must be an integer")


async def _json_body(request: web.Request) -> dict:
    try:
        body = await request.json()
    except ValueError as exc:
        raise web.HTTPBadRequest(text="Invalid JSON body") from exc
    if not isinstance(body, dict):
        raise web.HTTPBadRequest(text="JSON body must be an object")
    return body


def _json_dumps(obj: Any) -> str:
    """JSON serialiser that handles non-standard types."""
    return json.dumps(obj, default=str)


# ═══════════════════════════════════════════════════════════════════
#  Middleware factories
# ═══════════════════════════════════════════════════════════════════

def _make_api_key_middleware(api_key: str):
    """aiohttp middleware that requires an API key on POST/PUT/DELETE.

    The key is read from the ``X-API-Key`` header only and compared with
    ``hmac.compare_digest``.
    """

    @web.middleware
    async def api_key_middleware(request: web.Request, handler):
        if request.method in ("POST", "PUT", "DELETE"):
            key = request.headers.get("X-API-Key", "")
            if not hmac.compare_digest(key, api_key):
                raise web.HTTPUnauthorized(text="Invalid or missing API key")
        return await handler(request)

    return api_key_middleware


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Translate schedule errors into HTTP responses."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except (ScheduleError, ValueError) as exc:
        for exc_type, http_exc in _ERROR_STATUS:
            if isinstance(exc, exc_type):
                raise http_exc(text=str(exc)) from exc
        raise


class ScheduleAPI:
    """Thin aiohttp wrapper around a ScheduleRegistry."""

    def __init__(
        self,
        registry: ScheduleRegistry,
        host: str = "127.0.0.1",
        port: int = 8080,
        *,
        api_config: APIConfig | None = None,
    ):
        self.registry = registry
        self.host = host
        self.port = port
        self._api_config = api_config
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None

    # ── lifecycle ────────────────────────────────────────────────

    def build_app(self) -> web.Application:
        middlewares: list = [error_middleware]
        max_body = 65_536
        if self._api_config is not None:
            max_body = self._api_config.max_body_bytes
            if self._api_config.api_key:
                middlewares.insert(0, _make_api_key_middleware(self._api_config.api_key))
        app = web.Application(middlewares=middlewares, client_max_size=max_body)
        self._register_routes(app)
        self._app = app
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info(f"API listening on http://{self.host}:{self.port}")

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()

    # ── routes ───────────────────────────────────────────────────

    def _register_routes(self, app: web.Application) -> None:
        app.router.add_get("/health", self._health)
        app.router.add_get("/schedules", self._list_schedules)
        app.router.add_get("/schedule/{schedule_id}", self._query)
        app.router.add_post("/schedule", self._create)
        app.router.add_post("/schedule/{schedule_id}/sign", self._sign)
        app.router.add_post("/schedule/{schedule_id}/delete", self._delete)
        app.router.add_post("/sweep", self._sweep)
        app.router.add_get("/balance/{account_id}", self._balance)

    async def _call(self, fn, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))

    # ── handlers ─────────────────────────────────────────────────

    async def _health(self, _request: web.Request) -> web.Response:
        return web.json_response({
            "ok": True,
            "schedules": len(self.registry),
            "pending": await self._call(self.registry.pending_count),
        })

    async def _list_schedules(self, request: web.Request) -> web.Response:
        state = None
        raw = request.query.get("state")
        if raw:
            try:
                state = ScheduleState(raw.lower())
            except ValueError:
                raise web.HTTPBadRequest(text=f"Unknown state: {raw}")
        snaps = await self._call(self.registry.list_schedules, state)
        return web.json_response(
            {"schedules": [s.to_dict() for s in snaps]}, dumps=_json_dumps,
        )

    async def _query(self, request: web.Request) -> web.Response:
        snap = await self._call(self.registry.query, request.match_info["schedule_id"])
        return web.json_response(snap.to_dict(), dumps=_json_dumps)

    async def _create(self, request: web.Request) -> web.Response:
        """
        POST /schedule
        Body: {"sender": "0.0.1001", "receiver": "0.0.1002", "amount": 1000,
               "members": ["02ab..", ...], "threshold": 2, "memo": "",
               "ttl": 1800, "admin_authority": "02cd..", "creator": "0.0.2"}
        ``members``/``threshold`` default to the sender account's key list.
        """
        body = await _json_body(request)
        sender = body.get("sender", "")
        receiver = body.get("receiver", "")
        amount = _safe_int(body.get("amount", 0), "amount")
        if not sender or not receiver or amount <= 0:
            raise web.HTTPBadRequest(text="sender, receiver and positive amount required")
        key_set = await self._key_set_for(body, sender)
        ttl = body.get("ttl")
        schedule_id = await self._call(
            self.registry.create,
            TransferPayload.between(sender, receiver, amount),
            key_set,
            body.get("creator") or sender,
            payer=body.get("payer") or None,
            admin_authority=body.get("admin_authority", ""),
            memo=body.get("memo", ""),
            ttl=None if ttl is None else _safe_int(ttl, "ttl"),
        )
        return web.json_response({"status": "created", "schedule_id": schedule_id})

    async def _key_set_for(self, body: dict, sender: str) -> KeySet:
        members = body.get("members")
        if members is not None:
            if not isinstance(members, list):
                raise web.HTTPBadRequest(text="members must be a list")
            threshold = _safe_int(body.get("threshold", len(members)), "threshold")
            return KeySet(members, threshold)
        lookup = getattr(self.registry.gateway, "get_key_set", None)
        if lookup is None:
            raise web.HTTPBadRequest(text="members and threshold required")
        try:
            key_set = await self._call(lookup, sender)
        except LedgerError as exc:
            raise web.HTTPBadRequest(text=str(exc)) from exc
        if key_set is None:
            raise web.HTTPBadRequest(text=f"Account {sender} has no key list")
        return key_set

    async def _sign(self, request: web.Request) -> web.Response:
        """
        POST /schedule/{schedule_id}/sign
        Body: {"member": "02ab..", "signature": "3044.."}  (signature optional)
        """
        schedule_id = request.match_info["schedule_id"]
        body = await _json_body(request)
        member = body.get("member", "")
        if not member:
            raise web.HTTPBadRequest(text="member required")
        sig_hex = body.get("signature")
        if sig_hex:
            try:
                signature = bytes.fromhex(sig_hex)
            except (TypeError, ValueError):
                raise web.HTTPBadRequest(text="signature must be hex")
            result = await self._call(
                self.registry.sign_with_signature, schedule_id, member, signature,
            )
        else:
            result = await self._call(self.registry.sign, schedule_id, member)
        return web.json_response(result.to_dict(), dumps=_json_dumps)

    async def _delete(self, request: web.Request) -> web.Response:
        schedule_id = request.match_info["schedule_id"]
        body = await _json_body(request)
        requester = body.get("requester", "")
        snap = await self._call(self.registry.delete, schedule_id, requester)
        return web.json_response(snap.to_dict(), dumps=_json_dumps)

    async def _sweep(self, _request: web.Request) -> web.Response:
        expired = await self._call(self.registry.sweep_expired)
        return web.json_response({"expired": expired})

    async def _balance(self, request: web.Request) -> web.Response:
        account_id = request.match_info["account_id"]
        try:
            balance = await self._call(self.registry.gateway.get_balance, account_id)
        except LedgerError as exc:
            raise web.HTTPNotFound(text=str(exc)) from exc
        return web.json_response({"account_id": account_id, "balance": balance})
