from __future__ import annotations

import argparse
import json
import os
import sys
from dataclasses import replace
from typing import List, Optional, Sequence

from ..capture import new_record, photo_data_url
from ..config import load_settings
from ..domain.constants import CONDITION_CHOICES
from ..domain.models import Person
from ..errors import NotFound, PersistenceFailure, RecordValidationError, TranscriptionError
from ..export import write_csv
from ..logging import get_logger
from ..paths import expand_abs
from ..registry import Registry, build_registry
from ..transcribe import transcribe_grave_photo

LOG = get_logger("cli-main")


def _registry(ns: argparse.Namespace) -> Registry:
    settings = load_settings(os.getcwd())
    if getattr(ns, "db", None):
        settings.db_path = expand_abs(ns.db)
    return build_registry(settings, insecure=bool(getattr(ns, "insecure", False)))


def _transcribe(reg: Registry, data_url: str) -> List[Person]:
    return transcribe_grave_photo(
        data_url,
        api_key=reg.settings.api_key,
        model=reg.settings.transcribe_model,
        base_url=reg.settings.transcribe_base_url,
    )


def _handle_list(ns: argparse.Namespace) -> int:
    reg = _registry(ns)
    records = reg.store.unsynced_records() if ns.unsynced else reg.store.records()
    if ns.json:
        print(json.dumps([r.to_dict() for r in records], ensure_ascii=False, indent=2))
        return 0
    print(f"Registre ({len(records)})")
    for r in records:
        names = ", ".join(p.name for p in r.people if p.name) or "-"
        where = f"{r.lat:.5f}, {r.lng:.5f}" if r.has_location else "SANS GPS"
        flag = "sync" if r.is_synced else "local"
        number = r.stele_number if r.stele_number is not None else "-"
        print(f"N°{number:<5} allée={r.aisle_number or '-':<6} {r.condition:<12} [{flag}] {where}  {names}  ({r.id})")
    return 0


def _handle_capture(ns: argparse.Namespace) -> int:
    reg = _registry(ns)
    photo_path = expand_abs(ns.photo)
    data_url = photo_data_url(photo_path)

    people = [Person(name=name) for name in (ns.person or [])]
    if not people and not ns.no_ai:
        if reg.coordinator.is_online(False if ns.offline else None):
            try:
                people = _transcribe(reg, data_url)
            except TranscriptionError as exc:
                LOG.warning(f"Transcription failed: {exc}")
        else:
            LOG.info("Offline; skipping transcription")
    if not people:
        # One blank person to fill in later; the CSV export skips markers without people.
        people = [Person()]

    record = new_record(
        photo_url=data_url,
        people=people,
        aisle_number=ns.aisle or "",
        condition=ns.condition,
        lat=ns.lat,
        lng=ns.lng,
    )
    stamped = reg.store.append(record)
    print(json.dumps({"id": stamped.id, "steleNumber": stamped.stele_number, "people": len(stamped.people)}))
    return 0


def _handle_edit(ns: argparse.Namespace) -> int:
    reg = _registry(ns)
    record = reg.store.get(ns.record_id)
    changes = {}
    if ns.aisle is not None:
        changes["aisle_number"] = ns.aisle
    if ns.condition is not None:
        changes["condition"] = ns.condition
    if ns.stele_number is not None:
        changes["stele_number"] = ns.stele_number
    if not changes:
        LOG.info("Nothing to change")
        return 0
    reg.store.update(replace(record, **changes))
    return 0


def _handle_delete(ns: argparse.Namespace) -> int:
    reg = _registry(ns)
    reg.store.delete(ns.record_id)
    return 0


def _handle_export(ns: argparse.Namespace) -> int:
    reg = _registry(ns)
    out = expand_abs(ns.output)
    os.makedirs(os.path.dirname(out) or ".", exist_ok=True)
    write_csv(reg.store.records(), out)
    print(out)
    return 0


def _handle_sync(ns: argparse.Namespace) -> int:
    reg = _registry(ns)
    outcome = reg.coordinator.sync(ns.endpoint, online=False if ns.offline else None)
    print(outcome.message())
    return 0 if outcome.ok else 1


def _handle_config(ns: argparse.Namespace) -> int:
    reg = _registry(ns)
    if ns.config_command == "set-webhook":
        reg.store.set_webhook_url(ns.url)
    url = reg.store.webhook_url()
    print(json.dumps({
        "db_path": reg.settings.db_path,
        "webhook_url": url,
        "next_stele_number": reg.store.next_stele_number(),
        "transcribe_model": reg.settings.transcribe_model,
    }, ensure_ascii=False))
    return 0


def _handle_transcribe(ns: argparse.Namespace) -> int:
    reg = _registry(ns)
    people = _transcribe(reg, photo_data_url(expand_abs(ns.photo)))
    print(json.dumps({"people": [p.to_dict() for p in people]}, ensure_ascii=False, indent=2))
    return 0


def _handle_serve(ns: argparse.Namespace) -> int:
    from ..api import create_app
    import uvicorn

    app = create_app(_registry(ns), allow_origins=ns.allow_origins)
    uvicorn.run(app, host=ns.host, port=ns.port, log_level=ns.log_level)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="grave-registry",
        description="Field registry of grave markers: capture, list, export and sync to a spreadsheet webhook.",
    )
    parser.add_argument("--db", help="Override database path (defaults to GRAVE_DB_PATH or var/grave_db)")
    parser.add_argument("--insecure", action="store_true", help="Disable TLS verification for webhook calls")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ls = subparsers.add_parser("list", help="List records, newest first.")
    ls.add_argument("--unsynced", action="store_true", help="Only records not yet sent to the webhook")
    ls.add_argument("--json", action="store_true", help="Print records as JSON")
    ls.set_defaults(handler=_handle_list)

    cap = subparsers.add_parser("capture", help="Record a new marker from a photo.")
    cap.add_argument("--photo", required=True, help="Path to the marker photo (JPG/PNG)")
    cap.add_argument("--aisle", help="Aisle label")
    cap.add_argument("--condition", choices=CONDITION_CHOICES, help="Physical condition (default: Bon)")
    cap.add_argument("--lat", type=float)
    cap.add_argument("--lng", type=float)
    cap.add_argument("--person", action="append", help="Name of a person on the marker (skips AI transcription)")
    cap.add_argument("--no-ai", action="store_true", help="Do not call the transcription model")
    cap.add_argument("--offline", action="store_true", help="Skip the connectivity check and capture as offline")
    cap.set_defaults(handler=_handle_capture)

    edit = subparsers.add_parser("edit", help="Change marker-level fields of a record.")
    edit.add_argument("record_id")
    edit.add_argument("--aisle")
    edit.add_argument("--condition", choices=CONDITION_CHOICES)
    edit.add_argument("--stele-number", type=int, help="Positive stele number")
    edit.set_defaults(handler=_handle_edit)

    rm = subparsers.add_parser("delete", help="Delete a record (its stele number is not reused).")
    rm.add_argument("record_id")
    rm.set_defaults(handler=_handle_delete)

    exp = subparsers.add_parser("export", help="Write the registry as CSV (one row per person).")
    exp.add_argument("--output", default="registre.csv")
    exp.set_defaults(handler=_handle_export)

    sync = subparsers.add_parser("sync", help="Send unsynced records to the webhook.")
    sync.add_argument("--endpoint", help="Webhook URL for this run (defaults to the configured one)")
    sync.add_argument("--offline", action="store_true", help="Treat the network as unavailable")
    sync.set_defaults(handler=_handle_sync)

    cfg = subparsers.add_parser("config", help="Show or change stored settings.")
    cfg_sub = cfg.add_subparsers(dest="config_command", required=True)
    setw = cfg_sub.add_parser("set-webhook", help="Store the Google Apps Script web app URL")
    setw.add_argument("url")
    cfg_sub.add_parser("show", help="Print current settings")
    cfg.set_defaults(handler=_handle_config)

    tr = subparsers.add_parser("transcribe", help="Transcribe a marker photo without saving it.")
    tr.add_argument("--photo", required=True)
    tr.set_defaults(handler=_handle_transcribe)

    srv = subparsers.add_parser("serve", help="Run the JSON API.")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8002)
    srv.add_argument("--log-level", default="info")
    srv.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origins",
        help="Allowed CORS origin (can be provided multiple times, use '*' for any).",
    )
    srv.set_defaults(handler=_handle_serve)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    provided = list(argv) if argv is not None else sys.argv[1:]
    LOG.debug(f"CLI invoked with arguments: {provided}")
    args = build_parser().parse_args(provided)
    try:
        code = args.handler(args)
    except NotFound as exc:
        LOG.error(str(exc))
        code = 4
    except (RecordValidationError, TranscriptionError) as exc:
        LOG.error(str(exc))
        code = 2
    except PersistenceFailure as exc:
        LOG.error(f"Storage error: {exc}")
        code = 3
    except OSError as exc:
        LOG.error(f"File error: {exc}")
        code = 3
    LOG.debug(f"Subcommand '{args.command}' finished with exit code {code}.")
    return code


if __name__ == "__main__":
    sys.exit(main())
