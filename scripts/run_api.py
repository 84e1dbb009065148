#!/usr/bin/env python
"""
Start the offerte API with uvicorn.

Usage:
    python scripts/run_api.py [--port 8000] [--reference path/to/reference] [--no-reload]
"""
import argparse
import subprocess
import sys
import os
from pathlib import Path


def main():
    parser = argparse.ArgumentParser(description="Run the Offerte Calculator API")
    parser.add_argument("--host", default=os.environ.get("OFFERTE_API_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("OFFERTE_API_PORT", "8000")))
    parser.add_argument("--reference", help="Reference data directory (overrides OFFERTE_REFERENCE_DIR)")
    parser.add_argument("--no-reload", action="store_true", help="Disable auto-reload")
    args = parser.parse_args()

    project_root = Path(__file__).parent.parent
    os.chdir(project_root)

    env = os.environ.copy()
    src_path = str(project_root / "src")
    env["PYTHONPATH"] = os.pathsep.join(p for p in (src_path, env.get("PYTHONPATH")) if p)
    if args.reference:
        env["OFFERTE_REFERENCE_DIR"] = str(Path(args.reference).resolve())

    command = [
        sys.executable, "-m", "uvicorn",
        "offerte_tool.api.main:app",
        "--host", args.host,
        "--port", str(args.port),
    ]
    if not args.no_reload:
        command.append("--reload")

    print(f"Starting Offerte Calculator API on {args.host}:{args.port}...")
    try:
        subprocess.run(command, env=env)
    except KeyboardInterrupt:
        print("\nAPI stopped.")


if __name__ == "__main__":
    main()
