from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from fastapi import FastAPI, HTTPException, Response, status
from pydantic import BaseModel, Field, validator

from tapebf.byteio import ByteSink, BytesSource, from_text
from tapebf.executor import ExecutionState, Executor, StepLimitExceeded
from tapebf.translator import BracketMismatch, Program
from tapebf.visualizer import VisualizerSession

from .session import SessionRecord, SessionStore

logger = logging.getLogger(__name__)

TOTAL_STEPS_CAP = 10000


def _count_steps(program: Program, input_bytes: bytes, cap: int = TOTAL_STEPS_CAP) -> Tuple[int, bool]:
    """Dry-run ``program`` and report (steps, whether the cap cut it short)."""
    executor = Executor(BytesSource(input_bytes), ByteSink())
    try:
        return executor.run(program, max_steps=cap), False
    except StepLimitExceeded:
        return cap, True


class NewSession(BaseModel):
    code: str
    input: str = ""
    tape_window: int = Field(default=10, ge=0, le=1000)
    max_steps: Optional[int] = Field(default=None, ge=1)
    history_limit: int = Field(default=200, ge=1)

    @validator("input")
    def input_fits_in_bytes(cls, value: str) -> str:
        from_text(value)
        return value


class Snapshot(BaseModel):
    step: int
    pc: int
    operation: Optional[str]
    cursor: int
    tape_start: int
    tape: List[int]

    @classmethod
    def of(cls, state: ExecutionState) -> "Snapshot":
        return cls(
            step=state.step,
            pc=state.pc,
            operation=state.command,
            cursor=state.pointer,
            tape_start=state.tape_start,
            tape=list(state.tape),
        )


class SessionView(BaseModel):
    session_id: str
    operations: str
    state: Snapshot
    history: List[Snapshot]
    output: List[int]
    output_text: str
    finished: bool
    breakpoints: List[int]
    hit_breakpoint: Optional[int]
    total_steps: int
    total_steps_capped: bool


class AdvanceRequest(BaseModel):
    count: Optional[int] = Field(default=1, ge=1)
    ignore_breakpoints: bool = False


class AdvanceResult(SessionView):
    states: List[Snapshot]


def _view_fields(record: SessionRecord) -> dict:
    session = record.session
    return dict(
        session_id=record.session_id,
        operations=session.operations,
        state=Snapshot.of(session.state),
        history=[Snapshot.of(state) for state in session.history],
        output=list(session.output),
        output_text=session.output.decode("latin-1"),
        finished=session.finished,
        breakpoints=sorted(session.breakpoints),
        hit_breakpoint=session.hit_breakpoint,
        total_steps=record.total_steps,
        total_steps_capped=record.total_steps_capped,
    )


def create_app(store: Optional[SessionStore] = None) -> FastAPI:
    sessions = store if store is not None else SessionStore()
    app = FastAPI(title="tapebf debugging API", version="0.1.0")

    def _record(session_id: str) -> SessionRecord:
        record = sessions.find(session_id)
        if record is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No session {session_id}")
        return record

    @app.post("/api/sessions", response_model=SessionView, status_code=status.HTTP_201_CREATED)
    def open_session(body: NewSession) -> SessionView:
        try:
            session = VisualizerSession(
                body.code,
                from_text(body.input),
                tape_window=body.tape_window,
                max_steps=body.max_steps,
                history_limit=body.history_limit,
            )
        except BracketMismatch as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
        total, capped = _count_steps(session.program, session.input_bytes)
        record = sessions.add(session, total, capped)
        logger.info("opened session %s with %d operations", record.session_id, len(session.program))
        return SessionView(**_view_fields(record))

    @app.get("/api/sessions/{session_id}", response_model=SessionView)
    def show_session(session_id: str) -> SessionView:
        return SessionView(**_view_fields(_record(session_id)))

    @app.post("/api/sessions/{session_id}/restart", response_model=SessionView)
    def restart_session(session_id: str) -> SessionView:
        record = _record(session_id)
        record.session.restart()
        return SessionView(**_view_fields(record))

    @app.post("/api/sessions/{session_id}/advance", response_model=AdvanceResult)
    def advance_session(session_id: str, body: AdvanceRequest) -> AdvanceResult:
        record = _record(session_id)
        session = record.session
        kept = set(session.breakpoints)
        if body.ignore_breakpoints:
            session.breakpoints.clear()
        try:
            states = session.advance(body.count)
        except StepLimitExceeded as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        finally:
            session.breakpoints = kept
        return AdvanceResult(states=[Snapshot.of(state) for state in states], **_view_fields(record))

    @app.put("/api/sessions/{session_id}/breakpoints/{pc}", response_model=SessionView)
    def set_breakpoint(session_id: str, pc: int) -> SessionView:
        record = _record(session_id)
        try:
            record.session.set_breakpoint(pc)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
        return SessionView(**_view_fields(record))

    @app.delete("/api/sessions/{session_id}/breakpoints/{pc}", response_model=SessionView)
    def clear_breakpoint(session_id: str, pc: int) -> SessionView:
        record = _record(session_id)
        if not record.session.clear_breakpoint(pc):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No breakpoint at pc {pc}")
        return SessionView(**_view_fields(record))

    @app.delete("/api/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    def close_session(session_id: str) -> Response:
        if not sessions.discard(session_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No session {session_id}")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


__all__ = ["create_app"]
