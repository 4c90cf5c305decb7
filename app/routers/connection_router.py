from fastapi import APIRouter, Depends

from app.auth.supabase_auth import get_current_user
from app.gateway.base import Gateway
from app.gateway.factory import get_gateway
from app.schemas.connection_schema import (
    ConnectionOut,
    ConnectionRequest,
    ConnectionsOverview,
    ConnectionStatusOut,
)
from app.services import connection_service


router = APIRouter(prefix="/connections", tags=["Connections"])


# --------------------------------------------------
# MY CONNECTIONS
# --------------------------------------------------
@router.get("/mine", response_model=ConnectionsOverview)
async def get_my_connections(
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    return await connection_service.overview(gateway, current_user["sub"])


# --------------------------------------------------
# STATUS WITH ONE PROFILE
# --------------------------------------------------
@router.get("/status/{other_id}", response_model=ConnectionStatusOut)
async def get_connection_status(
    other_id: str,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    return await connection_service.get_status(gateway, current_user["sub"], other_id)


# --------------------------------------------------
# REQUEST CONNECTION
# --------------------------------------------------
@router.post("/request", response_model=ConnectionOut)
async def request_connection(
    payload: ConnectionRequest,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    return await connection_service.send_request(gateway, current_user["sub"], payload.target_id)


# --------------------------------------------------
# ACCEPT (recipient only)
# --------------------------------------------------
@router.post("/{connection_id}/accept", response_model=ConnectionOut)
async def accept_connection(
    connection_id: str,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    return await connection_service.accept_request(gateway, current_user["sub"], connection_id)


# --------------------------------------------------
# REJECT / CANCEL / REMOVE
# --------------------------------------------------
@router.post("/{connection_id}/reject")
async def reject_connection(
    connection_id: str,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    await connection_service.reject_request(gateway, current_user["sub"], connection_id)
    return {"message": "Request declined"}


@router.post("/{connection_id}/cancel")
async def cancel_connection(
    connection_id: str,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    await connection_service.cancel_request(gateway, current_user["sub"], connection_id)
    return {"message": "Request cancelled"}


@router.delete("/{connection_id}")
async def remove_connection(
    connection_id: str,
    current_user: dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
):
    await connection_service.remove_connection(gateway, current_user["sub"], connection_id)
    return {"message": "Connection removed"}
