import argparse
import csv
import sys
from pathlib import Path

import uvicorn

from presence_ai.api import build_services, create_app
from presence_ai.camera import CameraFrameSource
from presence_ai.config import get_settings
from presence_ai.exceptions import PresenceError
from presence_ai.geofence_module import CampusConfig
from presence_ai.session import LiveCaptureSession
from presence_ai.utils.logger import setup_logger
from presence_ai.utils.types import PositionFix


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Campus presence verification: face match plus geofence")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0", help="Host interface")
    serve.add_argument("--port", type=int, default=8000, help="Port")

    campus = subparsers.add_parser("set-campus", help="Store the campus center and radius")
    campus.add_argument("--lat", type=float, required=True, help="Center latitude in degrees")
    campus.add_argument("--lng", type=float, required=True, help="Center longitude in degrees")
    campus.add_argument("--radius", type=float, required=True, help="Radius in meters")

    for name, help_text in (("enroll", "Enroll a face template from the webcam"), ("verify", "Verify a face against the stored template")):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("--id", required=True, dest="subject_id", help="Subject ID")
        command.add_argument("--camera", type=int, default=None, help="Webcam index override")
        command.add_argument("--timeout", type=float, default=10.0, help="Seconds to wait for a single-face frame")
        if name == "verify":
            command.add_argument("--request-id", default=None, help="Pending attendance request to verify")

    replay = subparsers.add_parser("replay-fixes", help="Feed a CSV of position fixes through the geofence monitor")
    replay.add_argument("--id", required=True, dest="subject_id", help="Subject ID")
    replay.add_argument("--file", type=Path, required=True, help="CSV with latitude,longitude[,accuracy_m] rows")

    list_cmd = subparsers.add_parser("list-requests", help="List today's pending attendance requests")
    list_cmd.add_argument("--limit", type=int, default=100, help="Max rows to print")

    return parser


def _capture(args, services, settings, action):
    source = CameraFrameSource(
        camera_index=settings.camera_index if args.camera is None else args.camera,
        width=settings.frame_width,
        height=settings.frame_height,
        fps=settings.frame_fps,
        backend_order=settings.camera_backend_order,
    )
    throttle = services.pipeline.new_throttle(settings.camera_rotation, settings.camera_front_facing)
    with source, LiveCaptureSession(source, throttle) as session:
        if not session.wait_for_candidate(args.timeout):
            if session.last_error is not None:
                raise session.last_error
            return None
        return session.capture(action)


def read_fixes(path: Path) -> list[PositionFix]:
    fixes: list[PositionFix] = []
    with path.open(newline="", encoding="utf-8") as handle:
        for row in csv.reader(handle):
            if not row or row[0].strip().startswith("#") or row[0].strip().lower() == "latitude":
                continue
            accuracy = float(row[2]) if len(row) > 2 and row[2].strip() else None
            fixes.append(PositionFix(float(row[0]), float(row[1]), accuracy))
    return fixes


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    logger = setup_logger("main")
    settings = get_settings()

    try:
        if args.command == "serve":
            uvicorn.run(create_app(settings), host=args.host, port=args.port, log_level="info")
            return 0

        if args.command == "set-campus":
            services = build_services(settings)
            config = CampusConfig.from_mapping({"lat": args.lat, "lng": args.lng, "radius": args.radius})
            services.geofence.update_campus(config)
            print(f"Campus set: lat={config.latitude} lng={config.longitude} radius={config.radius_m}m")
            return 0

        if args.command == "enroll":
            services = build_services(settings)
            result = _capture(args, services, settings, lambda c: services.enrollment.enroll(args.subject_id, c))
            if result is None:
                print("No single-face frame captured. Please try again.")
                return 1
            print(f"Enrollment successful for {result.subject_id}.")
            return 0

        if args.command == "verify":
            services = build_services(settings)
            outcome = _capture(
                args,
                services,
                settings,
                lambda c: services.verification.verify(args.subject_id, c, request_id=args.request_id),
            )
            if outcome is None:
                print("No single-face frame captured. Please try again.")
                return 1
            verdict = "MATCH" if outcome.result.matched else "NO MATCH"
            print(f"{verdict} distance={outcome.result.distance:.3f}")
            if outcome.request is not None:
                print(f"Attendance request {outcome.request.id} is now {outcome.request.status}.")
            return 0 if outcome.result.matched else 2

        if args.command == "replay-fixes":
            services = build_services(settings)
            monitor = services.geofence.monitor_for(args.subject_id)
            previous = monitor.state.last_written
            for fix in read_fixes(args.file):
                state = monitor.handle_fix(fix)
                marker = "*" if state.last_written != previous else " "
                previous = state.last_written
                print(f"{marker} {fix.latitude:.6f},{fix.longitude:.6f} distance={state.last_distance_m:.1f}m inside={state.inside}")
            return 0

        if args.command == "list-requests":
            services = build_services(settings)
            requests = services.attendance.pending_for_today()
            if not requests:
                print("No pending attendance requests today.")
                return 0
            print(f"{'Request ID':<38} {'Subject':<16} {'Requested at'}")
            print("-" * 80)
            for request in requests[: args.limit]:
                print(f"{request.id:<38} {request.subject_id:<16} {request.requested_at.isoformat()}")
            return 0

    except PresenceError as exc:
        logger.error("Application error: %s", exc)
        print(f"Error: {exc}")
        return 1
    except KeyboardInterrupt:
        print("\nStopped by user.")
        return 1
    except Exception as exc:
        logger.exception("Unexpected failure")
        print(f"Unexpected error: {exc}")
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
