"""
Record bite-force readings from the ESP32 sensor for one patient

Connects to the sensor over Bluetooth LE, lets the operator pick the
measurement site and record the current reading, and saves the batch to the
patient's measurement history.

Usage:
    python run_device_capture.py --email doctor@example.com --patient-id 12

Commands at the prompt:
    1-5     select measurement site
    r       record the current reading
    s       save recorded readings
    q       disconnect and quit (unsaved readings are discarded)
    <enter> show the current reading
"""
import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path

# Add backend directory to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

from dotenv import load_dotenv
load_dotenv()

from database import AsyncSessionLocal
from app.core.auth import AuthSession, authenticate_user, lookup_role
from app.core.error_handling import AppException, ConnectionFailed, UnsupportedTransport
from app.models import MeasurementCategory
from app.services.capture_session import CaptureSession
from app.services.device_link import DeviceLink
from app.services.measurement_service import MeasurementService, format_series
from app.services.patient_service import get_owned_patient

logger = logging.getLogger("run_device_capture")

CATEGORIES = list(MeasurementCategory)


def print_batch(session: CaptureSession) -> None:
    for category in CATEGORIES:
        values = session.aggregator.series(category)
        print(f"   {category.label:<18} {format_series(values) if values else 'No data'}")


async def prompt(text: str) -> str:
    return (await asyncio.to_thread(input, text)).strip().lower()


async def capture_loop(session: CaptureSession) -> None:
    menu = "  ".join(f"[{i}] {c.label}" for i, c in enumerate(CATEGORIES, start=1))
    print(menu)
    while True:
        command = await prompt(
            f"[{session.active_category.label} | {session.current_force:.2f} N] (1-5/r/s/q) > "
        )
        if command == "q":
            return
        if command.isdigit() and 1 <= int(command) <= len(CATEGORIES):
            session.select_category(CATEGORIES[int(command) - 1])
        elif command == "r":
            reading = session.capture()
            if reading is None:
                print("⚠️  No sensor contact, nothing recorded")
            else:
                print(f"✅ Recorded {reading.value:.2f}N for {reading.category.label}")
        elif command == "s":
            try:
                measurement = await session.flush()
            except AppException as e:
                print(f"❌ {e.message}")
                continue
            print(f"💾 Saved measurement {measurement.id}")
        elif command == "":
            print_batch(session)
        else:
            print(menu)


async def run(email: str, password: str, patient_id: int, scan_timeout: float) -> int:
    async with AsyncSessionLocal() as db:
        user = await authenticate_user(db, email, password)
        if user is None:
            print("❌ Incorrect email or password")
            return 1
        auth = AuthSession(user_id=user.id, role=await lookup_role(db, user.id))
        try:
            patient = await get_owned_patient(db, auth, patient_id)
        except AppException as e:
            print(f"❌ {e.message}")
            return 1

        print(f"🦷 Patient {patient.patient_code}: {patient.name}")
        measurements = MeasurementService(db, auth)
        session = CaptureSession(patient.id, DeviceLink(scan_timeout=scan_timeout), measurements)

        print("🔍 Connecting to ESP32 BiteForce sensor...")
        try:
            async with session:
                print(f"✅ Connected to {session.link.device_name or 'BiteForce sensor'}")
                await capture_loop(session)
        except (UnsupportedTransport, ConnectionFailed) as e:
            print(f"❌ {e.message}")
            return 1

    print("👋 Disconnected")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Capture bite-force readings from the ESP32 sensor")
    parser.add_argument("--email", required=True, help="Doctor account email")
    parser.add_argument("--patient-id", type=int, required=True, help="Patient record id")
    parser.add_argument("--scan-timeout", type=float, default=10.0, help="Seconds to scan for the sensor")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    password = getpass.getpass("Password: ")
    sys.exit(asyncio.run(run(args.email, password, args.patient_id, args.scan_timeout)))


if __name__ == "__main__":
    main()
