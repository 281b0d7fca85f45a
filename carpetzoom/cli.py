from __future__ import annotations

import argparse
import os
import subprocess
from typing import Optional

from carpetzoom.config import load_config, normalise_config
from carpetzoom.pipeline import render_still, render_zoom_sequence
from carpetzoom.renderers.cpu_mpmath import BACKENDS
from carpetzoom.util.logging_setup import LEVEL_NAMES, configure_root_logging, get_logger, parse_level, queue_logging
from carpetzoom.util.manifest import build_manifest, write_manifest


def _git_commit() -> Optional[str]:
    try:
        r = subprocess.run(["git", "rev-parse", "HEAD"], capture_output=True, text=True, check=True)
        return r.stdout.strip()
    except (OSError, subprocess.CalledProcessError):
        return None


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="carpetzoom", description="Infinite-zoom Sierpinski carpet renderer.")
    p.add_argument("--config", type=str, default=None, help="Path to config JSON. If omitted, built-in defaults are used.")
    p.add_argument("--log-level", type=str, default="INFO", choices=list(LEVEL_NAMES), help="Log level.")
    p.add_argument("--log-file", type=str, default="carpetzoom.log", help="Log file path (rotating). Set empty to disable file logging.")
    sub = p.add_subparsers(dest="cmd", required=True)

    def view_args(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--width", type=int, default=None, help="Viewport width in pixels.")
        sp.add_argument("--height", type=int, default=None, help="Viewport height in pixels.")
        sp.add_argument("--center", type=str, nargs=2, default=None, metavar=("X", "Y"), help="World centre as decimals.")
        sp.add_argument("--scale", type=str, default=None, help="World units per pixel (default: 3/width).")
        sp.add_argument("--levels", type=int, default=None, help="Maximum recursion depth (1..60).")
        sp.add_argument("--backend", type=str, default=None, choices=list(BACKENDS), help="Band worker backend.")

    r = sub.add_parser("render", help="Render one still image to a PNG file.")
    view_args(r)
    r.add_argument("--output", type=str, default=None, help="Output PNG (defaults to config.output).")

    z = sub.add_parser("zoom", help="Render an anchored zoom-in sequence into the frames directory.")
    view_args(z)
    z.add_argument("--frames-dir", type=str, default=None, help="Override frames_dir from config.")
    z.add_argument("--steps", type=int, default=None, help="Number of zoom-in steps.")
    z.add_argument("--anchor", type=int, nargs=2, default=None, metavar=("PX", "PY"), help="Pixel kept fixed while zooming.")

    return p


_OVERRIDES = {
    "width": "width",
    "height": "height",
    "center": "center",
    "scale": "scale",
    "levels": "levels",
    "backend": "backend",
    "output": "output",
    "frames_dir": "frames_dir",
    "steps": "zoom_steps",
    "anchor": "zoom_anchor",
}


def _apply_overrides(cfg: dict, args: argparse.Namespace) -> dict:
    for attr, key in _OVERRIDES.items():
        value = getattr(args, attr, None)
        if value is not None:
            cfg[key] = value
    return cfg


def main(argv: Optional[list] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    log_level = parse_level(args.log_level)
    log_file = args.log_file if args.log_file and args.log_file.strip() else None
    listener_logger = configure_root_logging(level=log_level, console=True, log_file=log_file)

    logger = get_logger()
    cfg = normalise_config(_apply_overrides(load_config(args.config), args))

    with queue_logging(listener_logger, enabled=cfg["backend"] == "process") as worker_queue:
        if args.cmd == "render":
            result = render_still(cfg=cfg, log_queue=worker_queue, log_level=log_level)
            renderer_info = {
                "backend": cfg["backend"],
                "workers": cfg["workers"] or os.cpu_count(),
                "effective_levels": result.levels,
            }
            manifest = build_manifest(config=cfg, renderer_info=renderer_info, git_commit=_git_commit())
            write_manifest(os.path.join("artifacts", "run.json"), manifest)
            logger.info("Run manifest written: artifacts/run.json")
            return 0

        if args.cmd == "zoom":
            summary = render_zoom_sequence(cfg=cfg, log_queue=worker_queue, log_level=log_level)
            logger.info("Wrote %s frames to %s", summary["frames"], summary["frames_dir"])
            return 0

        raise RuntimeError("Unknown command.")
