from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
import logging

from adapter import TimerAdapter
from devices_types import Device
from models import ActionResult
import config

logger = logging.getLogger(__name__)


def describe(device: Device) -> dict:
    description = device.as_dict()
    description["values"] = device.values()
    return description


def create_app(adapter: TimerAdapter) -> FastAPI:
    app = FastAPI(title="Timers API")

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_device_or_404(device_id: str) -> Device:
        device = adapter.get_device(device_id)
        if device is None:
            raise HTTPException(status_code=404, detail=f"Device '{device_id}' not found")
        return device

    @app.get("/api/devices")
    async def list_devices():
        """List the devices with their current property values"""
        return [describe(device) for device in adapter.devices]

    @app.get("/api/devices/{device_id}")
    async def get_device(device_id: str):
        return describe(get_device_or_404(device_id))

    @app.post("/api/devices/{device_id}/actions/{action}", response_model=ActionResult)
    async def device_action(device_id: str, action: str):
        """Run an action. Unknown action names are ignored but still complete"""
        get_device_or_404(device_id)
        known = adapter.perform_action(device_id, action)
        return ActionResult(
            success=True,
            device=device_id,
            action=action,
            message=None if known else f"Unknown action '{action}'",
        )

    @app.post("/api/pairing")
    async def pairing():
        adapter.start_pairing()
        return {"success": True, "devices": len(adapter.devices)}

    return app


def create_server(app: FastAPI, host: str = config.API_HOST, port: int = config.API_PORT) -> uvicorn.Server:
    """Server meant to run inside the event loop that owns the devices"""
    logger.info(f"Serving the API on {host}:{port}")
    return uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="info"))
