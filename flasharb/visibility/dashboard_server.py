"""Minimal FastAPI status server."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from flasharb.execution.orchestrator import ExecutionOrchestrator
from flasharb.visibility.notifier import Notifier


class DashboardServer:
    def __init__(self, orchestrator: ExecutionOrchestrator, notifier: Notifier | None = None):
        self.orchestrator = orchestrator
        self.notifier = notifier or orchestrator.notifier
        self.app = FastAPI(title="flasharb")
        self._wire_routes()

    def _wire_routes(self) -> None:
        @self.app.get("/health")
        async def health():
            return {"ok": True, "running": self.orchestrator.running, "state": self.orchestrator.state.value}

        @self.app.get("/status")
        async def status():
            return self.orchestrator.status()

        @self.app.get("/opportunities")
        async def opportunities(limit: int = 50):
            recent = list(self.orchestrator.recent)[-limit:] if limit > 0 else []
            return [opp.model_dump() for opp in reversed(recent)]

        @self.app.get("/events")
        async def events(limit: int = 50):
            recent = list(self.notifier.recent)[-limit:] if limit > 0 else []
            return [e.model_dump(mode="json") for e in reversed(recent)]

        @self.app.get("/metrics")
        async def metrics():
            return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


__all__ = ["DashboardServer"]
