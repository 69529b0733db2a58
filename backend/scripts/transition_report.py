#!/usr/bin/env python3
import argparse
import json
import re
import sys
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

TRANSITION_PATTERN = re.compile(r"request_transition=(\{.*\})")
TERMINAL_STATUSES = ("completed", "cancelled")


def _iter_lines(paths: List[str]) -> Iterable[str]:
    if not paths:
        for line in sys.stdin:
            yield line.rstrip("\n")
        return
    for path in paths:
        with open(path, "r", encoding="utf-8", errors="replace") as handle:
            for line in handle:
                yield line.rstrip("\n")


def _parse_payload(line: str) -> Optional[Dict[str, Any]]:
    match = TRANSITION_PATTERN.search(line)
    if not match:
        return None
    try:
        value = json.loads(match.group(1))
    except json.JSONDecodeError:
        return None
    if not isinstance(value, dict):
        return None
    return value


def build_report(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    action_counts: Counter[str] = Counter()
    transition_counts: Counter[str] = Counter()
    actor_counts: Counter[str] = Counter()
    final_status: Dict[str, str] = {}

    for row in rows:
        action = str(row.get("action", "unknown"))
        source = row.get("from_status") or "none"
        target = str(row.get("to_status", "unknown"))
        action_counts[action] += 1
        transition_counts[f"{source}->{target}"] += 1
        actor_counts[str(row.get("actor_user_id", "unknown"))] += 1
        request_id = row.get("request_id")
        if request_id:
            final_status[str(request_id)] = target

    requests = len(final_status)
    settled = sum(1 for status in final_status.values() if status in TERMINAL_STATUSES)
    completed = sum(1 for status in final_status.values() if status == "completed")
    return {
        "total_transitions": len(rows),
        "requests": requests,
        "action_counts": dict(action_counts),
        "transition_counts": dict(transition_counts),
        "actors_top10": dict(actor_counts.most_common(10)),
        "final_status_counts": dict(Counter(final_status.values())),
        "terminal_rate": round(settled / requests, 4) if requests else 0.0,
        "completion_rate": round(completed / requests, 4) if requests else 0.0,
    }


def print_human(report: Dict[str, Any]) -> None:
    print(f"Total transitions: {report['total_transitions']}")
    print(f"Requests seen: {report['requests']}")
    print(f"Terminal rate: {report['terminal_rate']:.2%}  completion rate: {report['completion_rate']:.2%}")
    print("Action counts:")
    for action, count in sorted(report["action_counts"].items(), key=lambda x: x[1], reverse=True):
        print(f"  - {action}: {count}")
    print("Transitions:")
    for edge, count in sorted(report["transition_counts"].items(), key=lambda x: x[1], reverse=True):
        print(f"  - {edge}: {count}")
    print("Most active users:")
    for actor, count in report["actors_top10"].items():
        print(f"  - {actor}: {count}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Summarize VermaFarm request_transition logs.")
    parser.add_argument("log_files", nargs="*", help="Log files to parse. If omitted, read stdin.")
    parser.add_argument("--json-out", default="", help="Optional path to write JSON summary.")
    args = parser.parse_args()

    rows: List[Dict[str, Any]] = []
    for line in _iter_lines(args.log_files):
        payload = _parse_payload(line)
        if payload:
            rows.append(payload)

    report = build_report(rows)
    print_human(report)

    if args.json_out:
        path = Path(args.json_out)
        path.write_text(json.dumps(report, indent=2) + "\n", encoding="utf-8")
        print(f"Wrote report: {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
