import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel

from wikiwalk.controller import RunController
from wikiwalk.errors import FetchError, NoLinksAvailable, WikiWalkError

logger = logging.getLogger(__name__)


# -----------------------------
# UI
# -----------------------------
INDEX_HTML = r"""
<!doctype html>
<html>
<head>
  <meta charset="utf-8"/>
  <title>Wiki Walk</title>
  <style>
    body { font-family: ui-sans-serif, system-ui, -apple-system, Segoe UI, Roboto, Helvetica, Arial; margin: 24px; max-width: 1100px; }
    .row { display: flex; gap: 12px; flex-wrap: wrap; align-items: end; }
    label { display: block; font-size: 12px; opacity: 0.8; margin-bottom: 6px; }
    input { padding: 10px; border: 1px solid #ccc; border-radius: 10px; }
    #seed { width: 350px; }
    #branching { width: 70px; }
    button { padding: 10px 14px; border: 0; border-radius: 12px; cursor: pointer; font-weight: 700; }
    button:disabled { opacity: 0.6; cursor: not-allowed; }
    .card { margin-top: 16px; padding: 14px; border: 1px solid #e5e5e5; border-radius: 14px; }
    .mono { font-family: ui-monospace, SFMono-Regular, Menlo, Monaco, Consolas, "Liberation Mono", "Courier New"; }
    .stats span { display:inline-block; font-size:12px; padding:3px 8px; border-radius:999px; background:#f1f1f1; margin-right:8px; }
    .success { color: #0a7a2a; }
    .warning { color: #a15c00; }
    .error { color: #b3261e; font-weight: 900; }
    #log { max-height: 460px; overflow: auto; }
    #log li { cursor: pointer; }
    .onpath { background: #fbbf24; }
  </style>
</head>
<body>
  <h1>Wiki Walk</h1>

  <form id="start-form" class="row">
    <div>
      <label>Seed Wikipedia page title</label>
      <input id="seed" value=""/>
    </div>
    <div>
      <label>Branching</label>
      <input id="branching" type="number" min="1" max="50" value="1"/>
    </div>
    <div style="display:flex; gap:10px;">
      <button id="start" type="submit">Start</button>
      <button id="step" type="button">Step</button>
      <button id="pause" type="button">Pause</button>
      <button id="reset" type="button">Reset</button>
    </div>
  </form>

  <div class="card">
    <div id="feedback"></div>
    <div class="stats mono" id="stats" style="margin-top:8px;"></div>
  </div>

  <div class="card">
    <h3>Visits <span style="font-size:12px; opacity:0.8;">(click to show the path to the seed)</span></h3>
    <ol id="log" class="mono"></ol>
  </div>

<script>
  const el = (id) => document.getElementById(id);
  let last = null;

  async function post(url, body) {
    const res = await fetch(url, {
      method: "POST",
      headers: {"Content-Type": "application/json"},
      body: JSON.stringify(body || {})
    });
    return res.json();
  }

  function render(s) {
    last = s;
    const st = s.stats;
    el("stats").innerHTML =
      `<span>state: ${st.state}</span><span>steps: ${st.steps}</span><span>pages: ${st.unique_nodes}</span>` +
      `<span>walk links: ${st.walk_edges}</span><span>similarity links: ${st.similarity_edges}</span>` +
      `<span>max distance: ${st.max_distance}</span><span>current: ${st.current_page || "–"}</span>`;
    if (s.feedback) {
      el("feedback").className = s.feedback.severity;
      el("feedback").textContent = s.feedback.message;
    }
    el("pause").textContent = s.running ? "Pause" : "Resume";
    el("pause").disabled = !s.current;
    el("start").textContent = s.current ? "Restart" : "Start";
    const onPath = new Set(s.path_to_seed);
    const log = el("log");
    log.innerHTML = "";
    for (const v of s.visit_history) {
      const li = document.createElement("li");
      li.textContent = `${v.title}  (step ${v.step} • visits ${v.visits})`;
      if (onPath.has(v.id)) li.className = "onpath";
      li.addEventListener("click", async () => render(await post("/api/select", {node_id: v.id})));
      log.appendChild(li);
    }
  }

  async function refresh() {
    const res = await fetch("/api/snapshot");
    render(await res.json());
  }

  el("start-form").addEventListener("submit", async (event) => {
    event.preventDefault();
    await post("/api/branching", {factor: parseInt(el("branching").value, 10) || 1});
    await post("/api/start", {seed_title: el("seed").value.trim()});
    await refresh();
  });
  el("step").addEventListener("click", async () => { await post("/api/step"); await refresh(); });
  el("pause").addEventListener("click", async () => {
    await post(last && last.running ? "/api/pause" : "/api/resume");
    await refresh();
  });
  el("reset").addEventListener("click", async () => { await post("/api/reset"); await refresh(); });

  setInterval(refresh, 500);
  refresh();
</script>

</body>
</html>
"""


# -----------------------------
# API Models
# -----------------------------
class StartRequest(BaseModel):
    seed_title: str

class BranchingRequest(BaseModel):
    factor: int

class SelectRequest(BaseModel):
    node_id: Optional[str] = None


def failure(e: WikiWalkError) -> JSONResponse:
    # Fetch failures are the upstream's fault, everything else is a usage error.
    status_code = 502 if isinstance(e, FetchError) else 400
    return JSONResponse({"failure_reason": str(e), "severity": e.severity}, status_code=status_code)


# -----------------------------
# API
# -----------------------------
def create_app(controller: Optional[RunController] = None) -> FastAPI:
    app = FastAPI(title="Wiki Walk")
    app.state.controller = controller or RunController()

    def runner() -> RunController:
        return app.state.controller

    @app.get("/", response_class=HTMLResponse)
    def home():
        return HTMLResponse(INDEX_HTML)

    @app.get("/api/snapshot")
    def api_snapshot():
        return runner().snapshot()

    @app.post("/api/start")
    def api_start(req: StartRequest):
        try:
            runner().start(req.seed_title)
        except WikiWalkError as e:
            return failure(e)
        return runner().snapshot()

    @app.post("/api/step")
    def api_step():
        try:
            result = runner().step()
        except NoLinksAvailable as e:
            # Running out of links ends the walk normally.
            return {"done": True, "failure_reason": str(e), "snapshot": runner().snapshot()}
        except WikiWalkError as e:
            return failure(e)
        return {
            "done": False,
            "dropped": result is None,
            "event": {
                "step": result.step,
                "from": result.origin,
                "to": result.targets,
                "current": result.current,
                "backtracked": result.backtracked,
                "backtracked_from": result.backtracked_from,
                "avoid": sorted(result.avoid),
            } if result else None,
        }

    @app.post("/api/pause")
    def api_pause():
        return {"paused": runner().pause(), "state": runner().state.value}

    @app.post("/api/resume")
    def api_resume():
        try:
            resumed = runner().resume()
        except WikiWalkError as e:
            return failure(e)
        return {"resumed": resumed, "state": runner().state.value}

    @app.post("/api/reset")
    def api_reset():
        runner().reset()
        return {"state": runner().state.value, "generation": runner().generation}

    @app.post("/api/branching")
    def api_branching(req: BranchingRequest):
        return {"branch_factor": runner().set_branch_factor(req.factor)}

    @app.post("/api/select")
    def api_select(req: SelectRequest):
        runner().select_node(req.node_id)
        return runner().snapshot()

    @app.get("/api/path/{node_id}")
    def api_path(node_id: str):
        return {"node_id": node_id, "path": runner().find_path_to_seed(node_id)}

    return app


app = create_app()
