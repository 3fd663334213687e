from __future__ import annotations

import argparse
import json
import sys
from typing import List, Optional

from noderegistry.core.config.manager import ConfigManager
from noderegistry.core.config.paths import ConfigFsPaths
from noderegistry.core.errors import ConfigError


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Inspect registry settings or switch administrative changes on/off.")
    ap.add_argument("--root", default=".", help="Directory holding config/ (default: .)")
    sub = ap.add_subparsers(dest="cmd", required=True)
    sub.add_parser("show", help="Print the validated configuration.")
    toggle = sub.add_parser("admin-changes", help="Permit or refuse install/uninstall/enable/disable.")
    toggle.add_argument("state", choices=["on", "off"])
    args = ap.parse_args(argv)

    cm = ConfigManager(fs=ConfigFsPaths(str(args.root or ".")), logger=None)
    try:
        cfg = cm.load_all()
        if args.cmd == "admin-changes":
            cm.set_admin_changes_enabled(args.state == "on")
            print(f"Administrative changes {'enabled' if cm.available() else 'disabled'}.")
            return 0
    except ConfigError as e:
        print(f"{e.user_message} {e.context.get('errors', '')}", file=sys.stderr)
        return 2
    print(json.dumps(cfg.model_dump(), indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
