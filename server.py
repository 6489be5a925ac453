import asyncio
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from hotspot_sync.backend import Backend
from hotspot_sync.flush_guard import FlushGuard
from hotspot_sync.settings import logger


class Event(BaseModel):
    type: str
    sender_id: Optional[str] = None
    payload: Optional[Any] = None
    timestamp: Optional[str] = None


def create_app(backend: Optional[Backend] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.backend = backend if backend is not None else Backend()
        guard = FlushGuard(app.state.backend.service)
        task = asyncio.create_task(guard.run())
        try:
            yield
        finally:
            guard.stop()
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            # final save of every open project
            await asyncio.to_thread(app.state.backend.service.close_all_sessions)

    app = FastAPI(lifespan=lifespan)

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Allow all origins for dev
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/events")
    def send_event(event: Event):
        try:
            return app.state.backend._process_request_data(event.model_dump())
        except Exception as e:
            logger.exception(f"Request {event.type} failed")
            raise HTTPException(status_code=500, detail=str(e))

    @app.get("/health")
    def health():
        sessions = app.state.backend.service.sessions()
        return {
            "status": "ok",
            "open_sessions": len(sessions),
            "unsaved_sessions": sum(1 for s in sessions if s.policy.has_unsaved_changes),
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
