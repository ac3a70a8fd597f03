"""JSON endpoints for authentication and campaign management."""
from __future__ import annotations

import logging
import re
from functools import partial
from typing import Any, Dict, List, Optional, Union

import anyio
from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request, status
from pydantic import BaseModel, field_validator

from .auth import AuthService
from .database import Database
from .formatting import build_campaign_payload, format_campaign, format_report, unwrap_campaign
from .models import TokenPayload, get_safe_user
from .security import AuthGate
from .shapes import as_records
from .vendor import VendorClient


logger = logging.getLogger("autocall.api")

PASSWORD_MIN_LENGTH = 6

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    password: Optional[str] = None


class SelectLineRequest(BaseModel):
    campaignId: Optional[int] = None
    lineId: Optional[int] = None
    selected: bool = True


class OperatorIdsRequest(BaseModel):
    operatorIds: Optional[List[Union[int, str]]] = None

    @field_validator("operatorIds")
    @classmethod
    def _numeric_ids(cls, value: Optional[List[Union[int, str]]]) -> Optional[List[int]]:
        if value is None:
            return None
        normalised: List[int] = []
        for item in value:
            try:
                normalised.append(int(item))
            except (TypeError, ValueError) as exc:
                raise ValueError("operatorIds must contain numeric identifiers") from exc
        return normalised


class NumbersUploadRequest(BaseModel):
    numbers: Optional[List[Union[str, int]]] = None


def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def _validate_email(email: str) -> None:
    if not _EMAIL_PATTERN.match(email):
        raise _bad_request("Invalid email format")


def _validate_password(password: str) -> None:
    if len(password) < PASSWORD_MIN_LENGTH:
        raise _bad_request(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
        )
    # bcrypt cannot hash NUL bytes.
    if "\x00" in password:
        raise _bad_request("Password must not contain null characters")


def register_auth_routes(
    app: FastAPI,
    *,
    database: Database,
    auth_service: AuthService,
    gate: AuthGate,
) -> None:
    """Expose registration, login and account endpoints."""

    @app.post("/api/auth/register", status_code=status.HTTP_201_CREATED)
    async def register(request: RegisterRequest) -> Dict[str, Any]:
        if not request.email or not request.password:
            raise _bad_request("Email and password are required")
        _validate_email(request.email)
        _validate_password(request.password)

        # bcrypt hashing is CPU bound; keep it off the event loop.
        result = await anyio.to_thread.run_sync(
            auth_service.register, request.email, request.password, request.name
        )
        return {
            "success": True,
            "message": "User registered successfully",
            "user": get_safe_user(result.user),
            "token": result.token,
        }

    @app.post("/api/auth/login")
    async def login(request: LoginRequest) -> Dict[str, Any]:
        if not request.email or not request.password:
            raise _bad_request("Email and password are required")

        result = await anyio.to_thread.run_sync(
            auth_service.authenticate_user, request.email, request.password
        )
        return {
            "success": True,
            "message": "Login successful",
            "user": get_safe_user(result.user),
            "token": result.token,
        }

    @app.get("/api/auth/me")
    async def read_current_user(request: Request):
        async def handler(payload: TokenPayload, _request: Request) -> Dict[str, Any]:
            user = await anyio.to_thread.run_sync(database.get_user, payload.user_id)
            if user is None:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
            return {"success": True, "user": get_safe_user(user)}

        return await gate.with_auth(request, handler)

    @app.patch("/api/auth/me")
    async def update_current_user(
        request: ProfileUpdateRequest,
        payload: TokenPayload = Depends(gate.require),
    ) -> Dict[str, Any]:
        fields = request.model_dump(exclude_unset=True)
        if "email" in fields:
            if not fields["email"]:
                raise _bad_request("Email must not be empty")
            _validate_email(fields["email"])
        if "password" in fields:
            _validate_password(fields["password"] or "")

        user = await anyio.to_thread.run_sync(partial(database.update_user, payload.user_id, **fields))
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        logger.info("User %s updated their profile", user.id)
        return {"success": True, "user": get_safe_user(user)}

    @app.delete("/api/auth/me")
    async def delete_current_user(payload: TokenPayload = Depends(gate.require)) -> Dict[str, Any]:
        if not await anyio.to_thread.run_sync(database.delete_user, payload.user_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        logger.info("User %s deleted their account", payload.user_id)
        return {"success": True, "message": "Account deleted"}


def register_campaign_routes(app: FastAPI, *, vendor: VendorClient, gate: AuthGate) -> None:
    """Expose the vendor-backed campaign, operator and line endpoints."""

    protected = [Depends(gate.require)]

    # Static paths are registered before /api/campaigns/{campaign_id}.
    @app.get("/api/campaigns/lines", dependencies=protected)
    async def list_campaign_lines() -> Dict[str, Any]:
        lines = as_records(await vendor.list_lines(), keyed_top_level=True)
        return {"success": True, "count": len(lines), "data": lines}

    @app.put("/api/campaigns/select-line", dependencies=protected)
    async def select_line(request: SelectLineRequest) -> Dict[str, Any]:
        if request.lineId is None:
            raise _bad_request("lineId is required")
        if request.campaignId is None:
            raise _bad_request("campaignId is required")
        data = await vendor.select_line(request.campaignId, request.lineId, request.selected)
        return {"success": True, "message": "Phone number selected", "data": data}

    @app.get("/api/campaigns", dependencies=protected)
    async def list_campaigns(
        max_items: int = Query(50, alias="max", ge=1),
        pos: int = Query(0, ge=0),
    ) -> Dict[str, Any]:
        campaigns = [format_campaign(record) for record in as_records(await vendor.list_campaigns(max_items, pos))]
        return {"success": True, "count": len(campaigns), "data": campaigns}

    @app.post("/api/campaigns", dependencies=protected)
    async def create_campaign(body: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        if not str(body.get("name") or "").strip():
            raise _bad_request("Campaign name is required")
        try:
            payload = build_campaign_payload(body)
        except ValueError as exc:
            raise _bad_request(str(exc)) from exc

        campaign = format_campaign(await vendor.create_campaign(payload))
        logger.info("Created campaign %s", campaign["id"])
        return {"success": True, "message": "Campaign created successfully", "data": campaign}

    @app.get("/api/campaigns/{campaign_id}", dependencies=protected)
    async def get_campaign(campaign_id: str) -> Dict[str, Any]:
        raw = await vendor.get_campaign(campaign_id)
        return {"success": True, "data": format_campaign(unwrap_campaign(raw, campaign_id))}

    @app.put("/api/campaigns/{campaign_id}", dependencies=protected)
    async def update_campaign(campaign_id: str, body: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        data = await vendor.update_campaign(campaign_id, body)
        return {"success": True, "data": data}

    @app.delete("/api/campaigns/{campaign_id}", dependencies=protected)
    async def delete_campaign(campaign_id: str) -> Dict[str, Any]:
        data = await vendor.delete_campaign(campaign_id)
        logger.info("Deleted campaign %s", campaign_id)
        return {"success": True, "data": data}

    @app.post("/api/campaigns/{campaign_id}/start", dependencies=protected)
    async def start_campaign(campaign_id: str) -> Dict[str, Any]:
        data = await vendor.start_campaign(campaign_id)
        logger.info("Started campaign %s", campaign_id)
        return {"success": True, "message": "Campaign started successfully", "data": data}

    @app.post("/api/campaigns/{campaign_id}/stop", dependencies=protected)
    async def stop_campaign(campaign_id: str) -> Dict[str, Any]:
        data = await vendor.stop_campaign(campaign_id)
        logger.info("Stopped campaign %s", campaign_id)
        return {"success": True, "message": "Campaign stopped successfully", "data": data}

    @app.get("/api/campaigns/{campaign_id}/operators", dependencies=protected)
    async def list_campaign_operators(campaign_id: str) -> Dict[str, Any]:
        raw = await vendor.list_campaign_operators(campaign_id)
        return {"success": True, "data": as_records(raw, collection_keys=("operators",))}

    @app.post("/api/campaigns/{campaign_id}/operators", dependencies=protected)
    async def assign_operators(campaign_id: str, request: OperatorIdsRequest) -> Dict[str, Any]:
        if request.operatorIds is None:
            raise _bad_request("operatorIds array is required")
        data = await vendor.assign_operators(campaign_id, request.operatorIds)
        return {
            "success": True,
            "message": f"Successfully assigned {len(request.operatorIds)} operator(s) to campaign",
            "data": data,
        }

    @app.post("/api/campaigns/{campaign_id}/operators/remove", dependencies=protected)
    async def unassign_operators(campaign_id: str, request: OperatorIdsRequest) -> Dict[str, Any]:
        if request.operatorIds is None:
            raise _bad_request("operatorIds array is required")
        results = await vendor.unassign_operators(campaign_id, request.operatorIds)
        success_count = sum(1 for result in results if result["success"])
        return {
            "success": success_count > 0,
            "message": f"Unassigned {success_count} of {len(results)} operator(s)",
            "data": results,
        }

    @app.delete("/api/campaigns/{campaign_id}/operators/{operator_id}", dependencies=protected)
    async def unassign_operator(campaign_id: str, operator_id: str) -> Dict[str, Any]:
        await vendor.unassign_operator(campaign_id, operator_id)
        return {"success": True, "message": "Operator unassigned successfully"}

    @app.get("/api/campaigns/{campaign_id}/numbers", dependencies=protected)
    async def list_numbers(
        campaign_id: str,
        max_items: int = Query(1000, alias="max", ge=1),
        pos: int = Query(0, ge=0),
    ) -> Dict[str, Any]:
        raw = await vendor.list_numbers(campaign_id, max_items, pos)
        return {"success": True, "data": as_records(raw)}

    @app.post("/api/campaigns/{campaign_id}/numbers", dependencies=protected)
    async def upload_numbers(campaign_id: str, request: NumbersUploadRequest) -> Dict[str, Any]:
        if request.numbers is None:
            raise _bad_request("Numbers array is required")
        summary = await vendor.upload_numbers(campaign_id, request.numbers)
        return {
            "success": True,
            "message": (
                f"Uploaded {summary['successCount']} of {summary['totalCount']} phone numbers"
            ),
            "data": summary,
        }

    @app.get("/api/campaigns/{campaign_id}/results", dependencies=protected)
    async def list_call_results(
        campaign_id: str,
        max_items: int = Query(100, alias="max", ge=1),
        pos: int = Query(0, ge=0),
    ) -> Dict[str, Any]:
        raw = await vendor.list_call_results(campaign_id, max_items, pos)
        return {"success": True, "data": as_records(raw)}

    @app.get("/api/campaigns/{campaign_id}/report", dependencies=protected)
    async def get_call_report(campaign_id: str) -> Dict[str, Any]:
        return {"success": True, "data": format_report(await vendor.get_call_report(campaign_id))}

    @app.get("/api/employees", dependencies=protected)
    async def list_employees() -> Dict[str, Any]:
        raw = await vendor.list_employees()
        return {"success": True, "data": as_records(raw, collection_keys=("employees",))}

    @app.get("/api/employees/extensions", dependencies=protected)
    async def list_employee_extensions() -> Dict[str, Any]:
        return {"success": True, "data": await vendor.list_employee_extensions()}

    @app.get("/api/lines", dependencies=protected)
    async def list_phone_lines() -> Dict[str, Any]:
        lines = as_records(await vendor.list_phone_lines())
        return {"success": True, "count": len(lines), "data": lines}


__all__ = ["PASSWORD_MIN_LENGTH", "register_auth_routes", "register_campaign_routes"]
