"""
HTTP API. Core routes live here; every package under salah.plugins whose
``api`` module has get_router(salah_app) is mounted at /api/components/<package>/.
Interactive docs are served at /docs.
"""
import importlib
import logging
import pkgutil
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI

from salah.core.models import list_task_schedules

logger = logging.getLogger(__name__)


def _iso_utc(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _mount_plugin_routers(app: FastAPI, salah_app: Any) -> None:
    plugins = importlib.import_module("salah.plugins")
    for info in pkgutil.iter_modules(plugins.__path__):
        if not info.ispkg:
            continue
        module_name = f"salah.plugins.{info.name}.api"
        try:
            module = importlib.import_module(module_name)
        except ModuleNotFoundError as e:
            if e.name != module_name:
                raise
            continue
        get_router = getattr(module, "get_router", None)
        if get_router is None:
            continue
        router = get_router(salah_app)
        if router is not None:
            app.include_router(router, prefix=f"/api/components/{info.name}")
            logger.debug(f"Mounted API for plugin {info.name}")


def create_app(salah_app: Any) -> FastAPI:
    """FastAPI app bound to a SalahApp (anything with config, calculator, task_manager, qibla_enabled)."""
    app = FastAPI(title="Salah API", description="Prayer times, Qibla direction and the daily task")

    @app.get("/api/components")
    def list_components() -> List[Dict[str, Any]]:
        configured = salah_app.config.data.get("components") or {}
        return [
            {
                "name": name,
                "enabled": (settings or {}).get("enable", True),
                "config": settings or {},
            }
            for name, settings in configured.items()
        ]

    @app.get("/api/tasks")
    def list_tasks() -> Dict[str, Any]:
        """Stored daily schedules and the timers currently armed."""
        schedules = list_task_schedules()
        for row in schedules:
            row["next_run_at"] = _iso_utc(row["next_run_at"])
            row["last_run_at"] = _iso_utc(row["last_run_at"])
        timers = [
            {"name": timer["name"], "next_run_at": _iso_utc(timer["next_run_at"])}
            for timer in salah_app.task_manager.active_timers()
        ]
        return {"db_schedules": schedules, "active_timers": timers}

    _mount_plugin_routers(app, salah_app)
    return app


def run_api_server(salah_app: Any) -> None:
    """Serve the API in the calling thread on api.host:api.port until interrupted."""
    import uvicorn

    api_config = salah_app.config.data.get("api") or {}
    host = api_config.get("host", "127.0.0.1")
    port = int(api_config.get("port", 8765))
    logger.info(f"API server listening at http://{host}:{port} (docs at /docs)")
    # log_config=None keeps the handlers SalahApp installed
    uvicorn.run(create_app(salah_app), host=host, port=port, log_config=None)
