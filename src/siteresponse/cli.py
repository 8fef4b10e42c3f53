#!/usr/bin/env python3
"""Site Response Tool CLI — 1-D soil column on a compliant base.

Usage:
    srt run site.json --output ./out/
    srt run site.json --mode effective --dim 2D --dump-script
    srt mesh site.json
    srt script site.json --output ./out/
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path

from siteresponse.errors import SiteResponseError
from siteresponse.tools.site_input import load_site_input
from siteresponse.tools.site_model import SiteResponseModel


# ── Pretty output helpers ─────────────────────────────────────────────

class Colors:
    RED = "\033[91m"
    YELLOW = "\033[93m"
    GREEN = "\033[92m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RESET = "\033[0m"

def status(icon: str, msg: str):
    print(f"{Colors.CYAN}{icon}{Colors.RESET} {msg}")

def success(msg: str):
    print(f"{Colors.GREEN}✓{Colors.RESET} {msg}")

def warn(msg: str):
    print(f"{Colors.YELLOW}⚠{Colors.RESET} {msg}")

def error(msg: str):
    print(f"{Colors.RED}✗{Colors.RESET} {msg}", file=sys.stderr)

def header(msg: str):
    print(f"\n{Colors.BOLD}{msg}{Colors.RESET}")


# ── Commands ──────────────────────────────────────────────────────────

def _load(args) -> SiteResponseModel:
    overrides = {
        "mode": args.mode,
        "dimension": args.dim,
        "output_dir": getattr(args, "output", None),
    }
    data = load_site_input(args.site)
    settings = data.settings.override(**overrides)
    return SiteResponseModel(data.site, data.motion_x, data.motion_z, settings,
                             name=data.name)


def cmd_mesh(args) -> int:
    model = _load(args)
    plan = model.plan()
    if args.json:
        print(json.dumps({
            "dimension": plan.dimension,
            "mode": plan.mode,
            "num_nodes": plan.num_nodes,
            "num_elements": plan.num_elements,
            "height": plan.height,
            "layers": [vars(lm) for lm in plan.layers],
        }, indent=2))
        return 0
    header(f"Mesh plan: {model.name}")
    print(model.site.describe())
    print(plan.describe())
    f0 = model.site.natural_frequency()
    status("~", f"Column f0 = {f0:.3f} Hz (T0 = {1.0 / f0:.3f} s)")
    return 0


def cmd_script(args) -> int:
    model = _load(args)
    out = Path(model.settings.output_dir)
    path = Path(args.script) if args.script else out / model.settings.script_name
    status("📝", f"Writing OpenSeesPy script for '{model.name}' (no analysis)...")
    model.write_script(path)
    success(f"Script: {path}")
    return 0


def cmd_run(args) -> int:
    model = _load(args)
    s = model.settings
    header(f"SITE RESPONSE: {model.name}")
    print(f"{Colors.DIM}{'─' * 60}{Colors.RESET}")
    status("🧱", f"{model.site.num_layers - 1} soil layer(s) over bedrock, "
                 f"{s.mode} stress, {s.dimension}")

    script_path = None
    if args.dump_script:
        script_path = Path(s.output_dir) / s.script_name

    t0 = time.time()
    result = model.run(output_dir=s.output_dir, script_path=script_path)

    for report in result.stages:
        if report.converged:
            success(f"{report.stage.value}: {report.steps} steps")
        else:
            warn(f"{report.stage.value}: {report.failed_steps}/{report.steps} "
                 f"steps did not converge")
    stepping = result.stepping
    success(f"Dynamic: t = {stepping.time:.3f} s, {stepping.recoveries} "
            f"recoveries, smallest dt {stepping.min_dt:g} s")
    if result.peak_surface_accel is not None:
        success(f"Peak surface acceleration: {result.peak_surface_accel:.4f} m/s²")
    if result.script_path:
        success(f"Script: {result.script_path}")
    status("⏱", f"{time.time() - t0:.1f} s, output in {result.output_dir}")

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
    return 0


# ── Entry point ───────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="srt",
        description="Site Response Tool — layered soil column, staged gravity, "
                    "adaptive dynamic analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  srt run site.json --output ./out/
  srt run site.json --mode effective --dump-script
  srt mesh site.json
  srt script site.json
        """,
    )
    sub = parser.add_subparsers(dest="command")

    def common(p):
        p.add_argument("site", help="JSON site file")
        p.add_argument("--mode", choices=["total", "effective"],
                       help="Total or effective stress (overrides the file)")
        p.add_argument("--dim", choices=["2D", "3D"],
                       help="Model dimension (overrides the file)")
        p.add_argument("--output", "-o", help="Output directory")
        p.add_argument("--json", action="store_true", help="Print JSON")
        p.add_argument("--verbose", "-v", action="store_true",
                       help="Debug logging and tracebacks")

    p_run = sub.add_parser("run", help="Build and analyze the column")
    common(p_run)
    p_run.add_argument("--dump-script", action="store_true",
                       help="Write the OpenSeesPy script before shaking")
    p_run.set_defaults(func=cmd_run)

    p_mesh = sub.add_parser("mesh", help="Print the mesh plan")
    common(p_mesh)
    p_mesh.set_defaults(func=cmd_mesh)

    p_script = sub.add_parser("script", help="Write the OpenSeesPy script only")
    common(p_script)
    p_script.add_argument("--script", help="Script path (default OUTPUT/model.py)")
    p_script.set_defaults(func=cmd_script)
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    verbose = getattr(args, "verbose", False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    try:
        return args.func(args)
    except SiteResponseError as exc:
        error(str(exc))
        if verbose:
            logging.getLogger(__name__).exception("Run failed")
        return exc.exit_code


if __name__ == "__main__":
    sys.exit(main())
