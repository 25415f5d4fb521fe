"""JSON API over the roster store.

Reads are open; edits need a bearer token from ``/api/v1/auth/login``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import datetime
import secrets
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

APP_DIR = Path(__file__).resolve().parent
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

import database  # noqa: E402
from accounts import ACCOUNTS_FILE, AUDIT_FILE, AccountLockedError, AccountStore, AuditLogger  # noqa: E402
from settings import days_to_show, load_settings, shift_windows  # noqa: E402
from shift_state import (  # noqa: E402
    DayStatus,
    ShiftOverride,
    StaffMember,
    apply_quick_cycle,
    compute_shift_state,
    count_on_duty,
    find_override,
    generate_date_range,
    parse_date,
    resolve_shift_times,
)


TOKEN_TTL = datetime.timedelta(hours=8)


@asynccontextmanager
async def lifespan(_: FastAPI):
    database.init_database()
    yield


app = FastAPI(title="Roster Viewer API", version="0.1", lifespan=lifespan)
# bearer token -> (username, expiry)
app.state.tokens = {}


def get_db():
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_audit() -> AuditLogger:
    return AuditLogger(AUDIT_FILE)


def get_accounts(audit: AuditLogger = Depends(get_audit)) -> AccountStore:
    return AccountStore(ACCOUNTS_FILE, audit)


def get_settings() -> Dict[str, Any]:
    return load_settings()


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _purge_expired_tokens(tokens: Dict[str, Any]) -> None:
    now = _utcnow()
    for token in [token for token, (_, expires) in tokens.items() if expires <= now]:
        del tokens[token]


def _bearer_token(authorization: Optional[str]) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    return token.strip() if scheme.lower() == "bearer" else ""


def require_admin(request: Request, authorization: Optional[str] = Header(None)) -> str:
    tokens = request.app.state.tokens
    _purge_expired_tokens(tokens)
    entry = tokens.get(_bearer_token(authorization))
    if not entry:
        raise HTTPException(status_code=401, detail="Admin sign-in required")
    return entry[0]


def _parse_day(value: str) -> DayStatus:
    try:
        return DayStatus.for_date(parse_date(value))
    except ValueError:
        raise HTTPException(status_code=400, detail="date must be YYYY-MM-DD")


def _load_member(db, staff_id: str) -> StaffMember:
    member = database.get_staff(db, staff_id)
    if member is None:
        raise HTTPException(status_code=404, detail="Staff member not found")
    return member


def _member_from_payload(payload: Dict[str, Any], staff_id: Optional[str] = None) -> StaffMember:
    data = dict(payload)
    if staff_id is not None:
        data["id"] = staff_id
    try:
        return database.validate_staff(StaffMember.from_dict(data))
    except (KeyError, TypeError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=str(exc) or "Invalid staff record") from exc


def _shift_payload(member: StaffMember, day: DayStatus, windows) -> Dict[str, Any]:
    state = compute_shift_state(member, day)
    payload = {"date": day.full_date_str, **state.to_dict()}
    if state.is_working:
        times = resolve_shift_times(member, day.full_date_str, state.shift_type, windows)
        payload.update(times)
    return payload


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/api/v1/auth/login")
def login(
    payload: Dict[str, Any],
    request: Request,
    accounts: AccountStore = Depends(get_accounts),
) -> JSONResponse:
    username = (payload.get("username") or "").strip()
    password = payload.get("password") or ""
    try:
        account = accounts.verify_credentials(username, password)
    except AccountLockedError as exc:
        raise HTTPException(status_code=423, detail=f"Account locked until {exc.until.isoformat()}") from exc
    if not account:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    tokens = request.app.state.tokens
    _purge_expired_tokens(tokens)
    token = secrets.token_urlsafe(24)
    expires = _utcnow() + TOKEN_TTL
    tokens[token] = (account["username"], expires)
    return JSONResponse(content={"token": token, "user": account["username"], "expiresAt": expires.isoformat()})


@app.post("/api/v1/auth/logout")
def logout(
    request: Request,
    authorization: Optional[str] = Header(None),
    actor: str = Depends(require_admin),
    audit: AuditLogger = Depends(get_audit),
) -> JSONResponse:
    request.app.state.tokens.pop(_bearer_token(authorization), None)
    audit.log("logout", actor)
    return JSONResponse(content={"status": "signed out"})


@app.get("/api/v1/staff")
def list_staff(db=Depends(get_db)) -> JSONResponse:
    return JSONResponse(content={"staff": database.staff_payload(database.list_staff(db))})


@app.put("/api/v1/staff")
def save_staff(
    payload: Dict[str, Any],
    db=Depends(get_db),
    actor: str = Depends(require_admin),
    audit: AuditLogger = Depends(get_audit),
) -> JSONResponse:
    entries = payload.get("staff")
    if not isinstance(entries, list):
        raise HTTPException(status_code=422, detail="staff must be a list")
    members = [_member_from_payload(entry) for entry in entries]
    try:
        stored = database.save_roster(db, members)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    audit.log("roster_save", actor, details={"count": len(stored)})
    return JSONResponse(content={"staff": database.staff_payload(stored)})


@app.get("/api/v1/staff/{staff_id}")
def get_staff(staff_id: str, db=Depends(get_db)) -> JSONResponse:
    return JSONResponse(content=_load_member(db, staff_id).to_dict())


@app.put("/api/v1/staff/{staff_id}")
def put_staff(
    staff_id: str,
    payload: Dict[str, Any],
    db=Depends(get_db),
    actor: str = Depends(require_admin),
    audit: AuditLogger = Depends(get_audit),
) -> JSONResponse:
    member = database.upsert_staff(db, _member_from_payload(payload, staff_id))
    audit.log("staff_upsert", actor, details={"staff_id": member.id})
    return JSONResponse(content=member.to_dict())


@app.delete("/api/v1/staff/{staff_id}")
def remove_staff(
    staff_id: str,
    db=Depends(get_db),
    actor: str = Depends(require_admin),
    audit: AuditLogger = Depends(get_audit),
) -> JSONResponse:
    try:
        database.delete_staff(db, staff_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    audit.log("staff_delete", actor, details={"staff_id": staff_id})
    return JSONResponse(content={"deleted": staff_id})


@app.get("/api/v1/roster")
def roster(
    start: Optional[str] = Query(None),
    days: Optional[int] = Query(None, ge=1, le=366),
    db=Depends(get_db),
    settings: Dict[str, Any] = Depends(get_settings),
) -> JSONResponse:
    start_day = _parse_day(start).date if start else datetime.date.today()
    dates = generate_date_range(start_day, days or days_to_show(False, settings))
    windows = shift_windows(settings)
    members = database.list_staff(db)
    payload = {
        "start": start_day.isoformat(),
        "days": [
            {
                "date": day.full_date_str,
                "dayName": day.day_name,
                "dayNumber": day.day_number,
                "onDuty": count_on_duty(members, day),
            }
            for day in dates
        ],
        "staff": [
            {
                "id": member.id,
                "name": member.name,
                "role": member.role,
                "status": member.status,
                "shifts": [_shift_payload(member, day, windows) for day in dates],
            }
            for member in members
        ],
    }
    return JSONResponse(content=jsonable_encoder(payload))


@app.get("/api/v1/staff/{staff_id}/shifts/{date}")
def shift_detail(
    staff_id: str,
    date: str,
    db=Depends(get_db),
    settings: Dict[str, Any] = Depends(get_settings),
) -> JSONResponse:
    day = _parse_day(date)
    member = _load_member(db, staff_id)
    return JSONResponse(content=_shift_payload(member, day, shift_windows(settings)))


@app.post("/api/v1/staff/{staff_id}/shifts/{date}/cycle")
def cycle_shift(
    staff_id: str,
    date: str,
    db=Depends(get_db),
    actor: str = Depends(require_admin),
    audit: AuditLogger = Depends(get_audit),
    settings: Dict[str, Any] = Depends(get_settings),
) -> JSONResponse:
    day = _parse_day(date)
    windows = shift_windows(settings)
    member = apply_quick_cycle(_load_member(db, staff_id), day, windows)
    override = find_override(member, day.full_date_str)
    if override is None:
        member = database.clear_override(db, staff_id, day.full_date_str)
    else:
        member = database.set_override(db, staff_id, override)
    payload = _shift_payload(member, day, windows)
    audit.log(
        "quick_cycle",
        actor,
        details={"staff_id": staff_id, "date": day.full_date_str, "state": payload["shiftType"]},
    )
    return JSONResponse(content=payload)


@app.put("/api/v1/staff/{staff_id}/overrides/{date}")
def put_override(
    staff_id: str,
    date: str,
    payload: Dict[str, Any],
    db=Depends(get_db),
    actor: str = Depends(require_admin),
    audit: AuditLogger = Depends(get_audit),
    settings: Dict[str, Any] = Depends(get_settings),
) -> JSONResponse:
    day = _parse_day(date)
    _load_member(db, staff_id)
    try:
        override = ShiftOverride.from_dict({**payload, "date": day.full_date_str})
        member = database.set_override(db, staff_id, override)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    audit.log("override_set", actor, details={"staff_id": staff_id, "override": override.to_dict()})
    return JSONResponse(content=_shift_payload(member, day, shift_windows(settings)))


@app.delete("/api/v1/staff/{staff_id}/overrides/{date}")
def delete_override(
    staff_id: str,
    date: str,
    db=Depends(get_db),
    actor: str = Depends(require_admin),
    audit: AuditLogger = Depends(get_audit),
    settings: Dict[str, Any] = Depends(get_settings),
) -> JSONResponse:
    day = _parse_day(date)
    _load_member(db, staff_id)
    member = database.clear_override(db, staff_id, day.full_date_str)
    audit.log("override_clear", actor, details={"staff_id": staff_id, "date": day.full_date_str})
    return JSONResponse(content=_shift_payload(member, day, shift_windows(settings)))
