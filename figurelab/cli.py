#!/usr/bin/env python3
"""FigureLab CLI - drive a running FigureLab backend from the shell."""

import argparse
import json
import sys
import urllib.error
import urllib.parse
import urllib.request

from . import config


def _json_out(data):
    print(json.dumps(data))
    sys.exit(0)


def _request(method, endpoint, data=None, params=None):
    """Make a request to the FigureLab backend; return (status, body bytes)."""
    url = f"{config.API_BASE}{endpoint}"

    if params:
        filtered = {k: v for k, v in params.items() if v is not None}
        if filtered:
            url = f"{url}?{urllib.parse.urlencode(filtered)}"

    headers = {"Content-Type": "application/json"}
    body = json.dumps(data).encode() if data is not None else None

    req = urllib.request.Request(url, data=body, headers=headers, method=method)

    try:
        with urllib.request.urlopen(req, timeout=30) as response:
            return response.read()
    except urllib.error.HTTPError as e:
        error_body = e.read().decode()
        try:
            error_data = json.loads(error_body)
            _json_out({"status": "error", "error": f"API error: {error_data.get('detail', 'Unknown error')}"})
        except json.JSONDecodeError:
            _json_out({"status": "error", "error": f"API error ({e.code}): {error_body}"})
    except urllib.error.URLError as e:
        _json_out({"status": "error", "error": f"Connection failed: {e.reason}. Is the FigureLab backend running?"})


def _api_request(method, endpoint, data=None, params=None):
    return json.loads(_request(method, endpoint, data, params).decode())


def _parse_json_arg(value, default=None):
    """Parse a JSON argument, exiting with an error message if it is malformed."""
    if value is None:
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        _json_out({"status": "error", "error": f"Invalid JSON argument: {e}"})


def _parse_ids(value):
    """Accept a JSON list or a comma-separated string of ids."""
    if value is None:
        return None
    if value.lstrip().startswith("["):
        return _parse_json_arg(value)
    return [v.strip() for v in value.split(",") if v.strip()]


def _read_json_file(path):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        _json_out({"status": "error", "error": f"Cannot read {path}: {e}"})


# ── Service ──────────────────────────────────────────────────────────────────

def cmd_serve(args):
    import uvicorn

    from .logging_setup import setup_logging

    setup_logging(args.log_level)
    uvicorn.run("figurelab.backend.main:app", host=args.host, port=args.port, log_config=None)


def cmd_health(args):
    _json_out(_api_request("GET", "/health"))


# ── Document ─────────────────────────────────────────────────────────────────

def cmd_get_current(args):
    _json_out(_api_request("GET", "/canvas"))


def cmd_new(args):
    _json_out(_api_request("POST", "/document/new"))


def cmd_open(args):
    _json_out(_api_request("POST", "/document/open", data={"file_path": args.file_path}))


def cmd_save(args):
    _json_out(_api_request("POST", "/document/save", data={"file_path": args.file_path}))


def cmd_load(args):
    _json_out(_api_request("POST", "/document/load", data=_read_json_file(args.file)))


def cmd_set_canvas(args):
    data = {
        "width": args.width,
        "height": args.height,
        "background": args.background,
        "grid_size": args.grid_size,
    }
    if args.show_grid is not None:
        data["show_grid"] = args.show_grid == "true"
    if args.snap is not None:
        data["snap_enabled"] = args.snap == "true"
    _json_out(_api_request("PATCH", "/canvas", data={k: v for k, v in data.items() if v is not None}))


# ── Shapes ───────────────────────────────────────────────────────────────────

def cmd_add_shape(args):
    properties = _parse_json_arg(args.props, default={})
    _json_out(_api_request("POST", "/shapes", data={"type": args.type, "properties": properties}))


def cmd_get_shape(args):
    _json_out(_api_request("GET", f"/shapes/{args.shape_id}"))


def cmd_update_shape(args):
    properties = _parse_json_arg(args.props, default={})
    _json_out(_api_request("PATCH", f"/shapes/{args.shape_id}", data=properties))


def cmd_delete_shape(args):
    _json_out(_api_request("DELETE", f"/shapes/{args.shape_id}"))


# ── Selection ────────────────────────────────────────────────────────────────

def cmd_select(args):
    _json_out(_api_request("POST", "/selection", data={"ids": _parse_ids(args.ids)}))


def cmd_marquee(args):
    data = {"start": [args.x1, args.y1], "end": [args.x2, args.y2]}
    _json_out(_api_request("POST", "/selection/marquee", data=data))


def cmd_delete_selected(args):
    _json_out(_api_request("POST", "/selection/delete"))


def cmd_reorder(args):
    _json_out(_api_request("POST", "/selection/reorder", data={"direction": args.direction}))


def cmd_duplicate(args):
    _json_out(_api_request("POST", "/selection/duplicate", data={"offset": args.offset}))


def cmd_nudge(args):
    data = {"dx": args.dx, "dy": args.dy, "ids": _parse_ids(args.ids)}
    _json_out(_api_request("POST", "/selection/nudge", data=data))


def cmd_group(args):
    if args.ids:
        _api_request("POST", "/selection", data={"ids": _parse_ids(args.ids)})
    _json_out(_api_request("POST", "/group"))


def cmd_ungroup(args):
    if args.group_id:
        _api_request("POST", "/selection", data={"ids": [args.group_id]})
    _json_out(_api_request("POST", "/ungroup"))


# ── Layout ───────────────────────────────────────────────────────────────────

def cmd_align(args):
    data = {"mode": args.mode, "ids": _parse_ids(args.ids)}
    _json_out(_api_request("POST", "/layout/align", data=data))


def cmd_distribute(args):
    data = {"axis": args.axis, "ids": _parse_ids(args.ids)}
    _json_out(_api_request("POST", "/layout/distribute", data=data))


# ── Connectors ───────────────────────────────────────────────────────────────

def cmd_connect(args):
    data = {"from_id": args.from_id, "to_id": args.to_id, "stroke": args.stroke}
    _json_out(_api_request("POST", "/connectors", data=data))


def cmd_delete_connector(args):
    _json_out(_api_request("DELETE", f"/connectors/{args.connector_id}"))


# ── History ──────────────────────────────────────────────────────────────────

def cmd_undo(args):
    _json_out(_api_request("POST", "/undo"))


def cmd_redo(args):
    _json_out(_api_request("POST", "/redo"))


# ── Export & analysis ────────────────────────────────────────────────────────

def cmd_export_svg(args):
    params = {"include_metadata": str(args.metadata).lower(), "optimize": str(not args.pretty).lower()}
    svg = _request("GET", "/export/svg", params=params).decode()
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(svg)
        _json_out({"status": "ok", "file_path": args.output, "bytes": len(svg)})
    print(svg)
    sys.exit(0)


def cmd_validate(args):
    _json_out(_api_request("GET", "/validate"))


# ── AI ───────────────────────────────────────────────────────────────────────

def cmd_ai(args):
    _json_out(_api_request("POST", "/ai/command", data={"command": args.command_text}))


def cmd_apply_actions(args):
    actions = _read_json_file(args.file)
    if isinstance(actions, dict):
        actions = actions.get("actions", [])
    _json_out(_api_request("POST", "/ai/apply", data={"actions": actions}))


def build_parser():
    parser = argparse.ArgumentParser(prog="figurelab", description="FigureLab figure editor CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    # Service
    p = sub.add_parser("serve")
    p.add_argument("--host", default=config.HOST)
    p.add_argument("--port", type=int, default=config.PORT)
    p.add_argument("--log-level", default=config.LOG_LEVEL)

    sub.add_parser("health")

    # Document
    sub.add_parser("get-current")
    sub.add_parser("new")

    p = sub.add_parser("open")
    p.add_argument("--file-path", required=True)

    p = sub.add_parser("save")
    p.add_argument("--file-path", default=None)

    p = sub.add_parser("load")
    p.add_argument("--file", required=True)

    p = sub.add_parser("set-canvas")
    p.add_argument("--width", type=float, default=None)
    p.add_argument("--height", type=float, default=None)
    p.add_argument("--background", default=None)
    p.add_argument("--grid-size", type=int, default=None)
    p.add_argument("--show-grid", choices=["true", "false"], default=None)
    p.add_argument("--snap", choices=["true", "false"], default=None)

    # Shapes
    p = sub.add_parser("add-shape")
    p.add_argument("--type", required=True)
    p.add_argument("--props", default=None, help="JSON object of shape properties")

    p = sub.add_parser("get-shape")
    p.add_argument("--shape-id", required=True)

    p = sub.add_parser("update-shape")
    p.add_argument("--shape-id", required=True)
    p.add_argument("--props", required=True, help="JSON object of changed properties")

    p = sub.add_parser("delete-shape")
    p.add_argument("--shape-id", required=True)

    # Selection
    p = sub.add_parser("select")
    p.add_argument("--ids", required=True)

    p = sub.add_parser("marquee")
    for name in ("x1", "y1", "x2", "y2"):
        p.add_argument(f"--{name}", type=float, required=True)

    sub.add_parser("delete-selected")

    p = sub.add_parser("reorder")
    p.add_argument("--direction", required=True, choices=["forward", "backward", "front", "back"])

    p = sub.add_parser("duplicate")
    p.add_argument("--offset", type=float, default=None)

    p = sub.add_parser("nudge")
    p.add_argument("--dx", type=float, default=0)
    p.add_argument("--dy", type=float, default=0)
    p.add_argument("--ids", default=None)

    p = sub.add_parser("group")
    p.add_argument("--ids", default=None)

    p = sub.add_parser("ungroup")
    p.add_argument("--group-id", default=None)

    # Layout
    p = sub.add_parser("align")
    p.add_argument("--mode", default="left")
    p.add_argument("--ids", default=None)

    p = sub.add_parser("distribute")
    p.add_argument("--axis", default="horizontal")
    p.add_argument("--ids", default=None)

    # Connectors
    p = sub.add_parser("connect")
    p.add_argument("--from-id", default=None)
    p.add_argument("--to-id", default=None)
    p.add_argument("--stroke", default=None)

    p = sub.add_parser("delete-connector")
    p.add_argument("--connector-id", required=True)

    # History
    sub.add_parser("undo")
    sub.add_parser("redo")

    # Export & analysis
    p = sub.add_parser("export-svg")
    p.add_argument("--output", default=None)
    p.add_argument("--metadata", action="store_true")
    p.add_argument("--pretty", action="store_true")

    sub.add_parser("validate")

    # AI
    p = sub.add_parser("ai")
    p.add_argument("command_text", metavar="COMMAND")

    p = sub.add_parser("apply-actions")
    p.add_argument("--file", required=True)

    return parser


CMD_MAP = {
    "serve": cmd_serve,
    "health": cmd_health,
    "get-current": cmd_get_current,
    "new": cmd_new,
    "open": cmd_open,
    "save": cmd_save,
    "load": cmd_load,
    "set-canvas": cmd_set_canvas,
    "add-shape": cmd_add_shape,
    "get-shape": cmd_get_shape,
    "update-shape": cmd_update_shape,
    "delete-shape": cmd_delete_shape,
    "select": cmd_select,
    "marquee": cmd_marquee,
    "delete-selected": cmd_delete_selected,
    "reorder": cmd_reorder,
    "duplicate": cmd_duplicate,
    "nudge": cmd_nudge,
    "group": cmd_group,
    "ungroup": cmd_ungroup,
    "align": cmd_align,
    "distribute": cmd_distribute,
    "connect": cmd_connect,
    "delete-connector": cmd_delete_connector,
    "undo": cmd_undo,
    "redo": cmd_redo,
    "export-svg": cmd_export_svg,
    "validate": cmd_validate,
    "ai": cmd_ai,
    "apply-actions": cmd_apply_actions,
}


def main(argv=None):
    args = build_parser().parse_args(argv)
    CMD_MAP[args.command](args)


if __name__ == "__main__":
    main()
