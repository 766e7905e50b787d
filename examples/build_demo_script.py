#!/usr/bin/env python3
"""
Demo Script Builder

Builds a small instrumentation script through the HTTP API, compiles it and
prints the statement listing. Run this after starting the server.

The script reads a target memory address whenever a UI value changes:

    UI Event (host) -> RPC Bridge -> Read Memory (target) -> Log (host)

Usage:
    python build_demo_script.py [--base-url URL]

Examples:
    python build_demo_script.py
    python build_demo_script.py --base-url http://localhost:8000
    python build_demo_script.py --cleanup
"""

import argparse
import requests
import sys


DEFAULT_BASE_URL    = "http://localhost:8000"
DEMO_SCRIPT_NAME    = "Demo: read on UI change"
DEMO_MEMORY_ADDRESS = "0x401000"


def api_post(base_url: str, endpoint: str, data: dict = None) -> dict:
    """Make a POST request to the API"""
    url = f"{base_url}{endpoint}"
    try:
        response = requests.post(url, json=data or {})
        response.raise_for_status()
        return response.json()
    except requests.exceptions.ConnectionError:
        print(f"ERROR: Cannot connect to {base_url}")
        print("Make sure the hookgraph server is running.")
        sys.exit(1)
    except requests.exceptions.HTTPError as e:
        print(f"ERROR: {e}")
        print(f"Response: {response.text}")
        return None


def list_scripts(base_url: str):
    """List all scripts of the current project"""
    print("\n=== Current Scripts ===")
    result = api_post(base_url, "/scripts/list")
    if result and result.get("scripts"):
        for script in result["scripts"]:
            marker = "*" if script.get("current") else " "
            print(f"  {marker} {script['id']}  {script['name']:32} nodes={script['nodes']} connections={script['connections']}")
    else:
        print("  (no scripts)")
    print()


def add_node(base_url: str, script_id: str, node_type: str, x: float, y: float, params: dict = None) -> str:
    result = api_post(base_url, f"/scripts/{script_id}/nodes/add", {
        "type": node_type,
        "position": {"x": x, "y": y},
        "parameter_values": params or {},
    })
    node_id = result["node"]["id"]
    print(f"  + {node_type:12} {node_id}")
    return node_id


def connect(base_url: str, script_id: str, from_node: str, from_port: str, to_node: str, to_port: str):
    result = api_post(base_url, f"/scripts/{script_id}/connections/add", {
        "from_node_id": from_node,
        "from_port": from_port,
        "to_node_id": to_node,
        "to_port": to_port,
    })
    if result:
        print(f"  ~ {from_port} -> {to_port}")
    return result


def build_demo_script(base_url: str):
    """Create, wire and compile the demo script"""
    print("\n" + "="*60)
    print("Building Demo Script")
    print("="*60)

    script    = api_post(base_url, "/scripts/create", {"name": DEMO_SCRIPT_NAME})["script"]
    script_id = script["id"]
    print(f"Created script {script_id}")

    event  = add_node(base_url, script_id, "event_ui"   ,   0, 0, {"componentId": "address_box"})
    bridge = add_node(base_url, script_id, "rpc_bridge" , 200, 0, {"method": "readMemory"})
    read   = add_node(base_url, script_id, "memory_read", 400, 0, {"address": DEMO_MEMORY_ADDRESS})
    log    = add_node(base_url, script_id, "log"        , 600, 0)

    connect(base_url, script_id, event , "exec" , bridge, "exec"   )
    connect(base_url, script_id, bridge, "exec" , read  , "exec"   )
    connect(base_url, script_id, read  , "exec" , log   , "exec"   )
    connect(base_url, script_id, read  , "value", log   , "message")

    print("\nTrying a direct host -> target connection (expected to be rejected):")
    stray = add_node(base_url, script_id, "memory_read", 400, 200)
    connect(base_url, script_id, event, "exec", stray, "exec")
    api_post(base_url, f"/scripts/{script_id}/nodes/delete/{stray}")

    result = api_post(base_url, f"/scripts/listing/{script_id}")
    print("\n" + result["listing"])

    api_post(base_url, "/project/save")
    list_scripts(base_url)


def cleanup_demo_scripts(base_url: str):
    """Remove every script created by this demo"""
    print("\n" + "="*60)
    print("Cleaning up Demo Scripts")
    print("="*60)

    result = api_post(base_url, "/scripts/list") or {}
    for script in result.get("scripts", []):
        if script["name"] == DEMO_SCRIPT_NAME:
            print(f"Deleting script: {script['id']}")
            api_post(base_url, f"/scripts/delete/{script['id']}", {"confirmed": True})

    api_post(base_url, "/project/save")
    print("\nCleanup complete!")
    list_scripts(base_url)


def main():
    parser = argparse.ArgumentParser(description="Build and compile a demo instrumentation script")
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL, help="Server API base URL")
    parser.add_argument("--cleanup", action="store_true", help="Remove demo scripts instead of creating one")
    parser.add_argument("--list", action="store_true", help="Just list current scripts")

    args = parser.parse_args()

    if args.list:
        list_scripts(args.base_url)
    elif args.cleanup:
        cleanup_demo_scripts(args.base_url)
    else:
        build_demo_script(args.base_url)


if __name__ == "__main__":
    main()
