"""Live check: post readings to a running leakwatch service and print what it reports."""

import sys
import time

import httpx


BASE = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:5000"
API = f"{BASE}/api"


def _reading(**overrides) -> dict:
    base = {
        "sensor1": 150,
        "sensor2": 180,
        "sensor3": 120,
        "leak_confirmed": 0,
        "burst_confirmed": 0,
        "leak_location": "No leak detected",
        "confidence": 85.5,
        "correlation_score": 92,
        "stability_score": 88,
        "environmental_noise": 0,
        "active_sensors": 0,
    }
    base.update(overrides)
    return base


def main() -> None:
    with httpx.Client(timeout=5.0) as client:
        print("1. POST /api/data (normal flow)")
        print("  ", client.post(f"{API}/data", json=_reading()).json())

        print("\n2. POST /api/data (pipeline burst)")
        burst = _reading(
            leak_confirmed=1,
            burst_confirmed=1,
            leak_location="Between sensor 1 and 2",
            burst_type="PIPELINE BURST",
            burst_intensity=42.0,
            active_sensors=2,
        )
        print("  ", client.post(f"{API}/data", json=burst).json())

        print("\n3. POST /api/data (bad payload, expect 400)")
        bad = client.post(f"{API}/data", json={"sensor_values": [150, "x", 120]})
        print("  ", bad.status_code, bad.json())

        print("\n4. GET /api/status")
        status = client.get(f"{API}/status").json()
        print(f"   status={status['status']} sensors={status['sensor_values']} "
              f"burst_type={status['burst_type']} at {status['timestamp']}")

        print("\n5. GET /api/history")
        history = client.get(f"{API}/history").json()
        print(f"   {len(history)} readings, newest at {history[-1]['timestamp'] if history else None}")

        print("\n6. GET /api/sensors")
        print(f"   {len(client.get(f'{API}/sensors').json())} sensor samples")

        # Give the poller a couple of ticks to pick up the burst.
        time.sleep(4.5)
        print("\n7. GET /api/alert")
        alert = client.get(f"{API}/alert").json()
        print(f"   phase={alert['phase']} snapshot={alert['snapshot']}")

        print("\n8. POST /api/dismiss")
        print("  ", client.post(f"{API}/dismiss").json())
        print("   phase after dismiss:", client.get(f"{API}/alert").json()["phase"])


if __name__ == "__main__":
    main()
