"""FastAPI REST interface for the line fisher."""

from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from fisher.config import CONFIG, FisherConfig
from fisher.core import combinatorics
from fisher.core.tree import format_delta, format_score
from fisher.errors import ConfigurationError, FisherBusyError, StateImportError
from fisher.main import LineFisher
from fisher.persistence import SqliteLineStore
from fisher.schema import ConfigModel, LineModel

app = FastAPI(title=CONFIG.api.title, version="1.0.0")

# Shared fisher instance (owns the one live state).
fisher = LineFisher(sink=SqliteLineStore(CONFIG.api.store_path) if CONFIG.api.store_path else None)


@app.exception_handler(RequestValidationError)
def _invalid_request(request: Request, exc: RequestValidationError):
    errors = [{"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]} for e in exc.errors()]
    return JSONResponse(status_code=400, content={"detail": errors})


def _progress() -> dict:
    out = fisher.progress().to_dict()
    out["is_running"] = fisher.is_running
    out["last_outcome"] = fisher.last_outcome.value if fisher.last_outcome else None
    out["last_error"] = fisher.last_error
    return out


@app.get("/config/estimate")
def estimate(
    depth: int = Query(CONFIG.fisher.max_depth, ge=0),
    responders: Optional[str] = Query(None, description="comma separated per-depth branching counts"),
    default: int = Query(CONFIG.fisher.default_responder_count, ge=1),
):
    counts = ()
    if responders:
        try:
            counts = tuple(int(c) for c in responders.split(",") if c.strip())
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid responder counts: {responders}")
    cfg = FisherConfig(max_depth=depth, responder_counts=counts, default_responder_count=default)
    try:
        cfg.validate()
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "branching_factors": combinatorics.branching_factors(cfg),
        "total_nodes": combinatorics.total_node_count(cfg),
        "total_lines": combinatorics.total_line_count(cfg),
        "evaluator_calls": combinatorics.expected_evaluator_calls(cfg),
        "node_formula": combinatorics.node_formula(cfg),
        "line_formula": combinatorics.line_formula(cfg),
    }


@app.post("/fish")
def fish(req: ConfigModel):
    try:
        fisher.configure(req.to_config())
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FisherBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    fisher.start()
    return _progress()


@app.post("/stop")
def stop():
    stopped = fisher.stop()
    out = _progress()
    out["stopped"] = stopped
    return out


@app.post("/continue")
def resume():
    if not fisher.start():
        raise HTTPException(status_code=409, detail="Already fishing")
    return _progress()


@app.post("/reset")
def reset():
    try:
        fisher.reset()
    except FisherBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _progress()


@app.get("/progress")
def progress():
    return _progress()


@app.get("/state")
def export_state():
    return fisher.export_state()


@app.post("/state")
async def import_state(request: Request):
    body = await request.body()
    try:
        state = fisher.import_state(body)
    except FisherBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StateImportError as e:
        raise HTTPException(status_code=400, detail={"message": str(e), "issues": [i.to_dict() for i in e.issues]})
    return {"lines": len(state.lines), "queue": len(state.queue)}


@app.get("/lines")
def get_lines(done_only: bool = False) -> List[dict]:
    state = fisher.state
    cfg = state.config
    white = cfg.resolved().initiator_is_white
    out = []
    for line in fisher.lines(done_only=done_only):
        item = LineModel.from_line(line).model_dump(by_alias=True, mode="json")
        item["sanGame"] = state.san_game(line)
        item["scoreText"] = format_score(line.score, line.mate)
        item["delta"] = format_delta(line.score, cfg.baseline_score, white)
        item["endReason"] = line.end_reason.value if line.end_reason else None
        out.append(item)
    return out


@app.get("/tree")
def get_tree():
    tree = fisher.tree()
    return {"rootFEN": tree.root_fen, "nodes": tree.to_list()}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=CONFIG.api.api_port)
