import time
import subprocess
import httpx
import sys
import os
import signal
from datetime import date, timedelta

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"

# Ids created by paratransit/seed_fleet.py on an empty database
PROVIDER_ID = int(os.getenv("SEED_PROVIDER_ID", "1"))
CUSTOMER_ID = int(os.getenv("SEED_CUSTOMER_ID", "1"))
VEHICLE_ID = int(os.getenv("SEED_VEHICLE_ID", "1"))

def wait_for_server(retries=10, delay=2):
    url = f"{BASE_URL}/health"
    print(f"Waiting for server at {url}...")
    for i in range(retries):
        try:
            resp = httpx.get(url)
            if resp.status_code == 200:
                print("✅ Server is up!")
                return True
        except httpx.ConnectError:
            pass
        time.sleep(delay)
    print("❌ Server failed to start.")
    return False

def start_server(echo=False):
    env = {**os.environ, "DB_ECHO": "True"} if echo else None
    return subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "paratransit.app.main:app", "--host", "127.0.0.1", "--port", "8000"],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=env
    )

def run_verification():
    day = date.today() + timedelta(days=7)

    # 1. Start Server (First Run)
    print("\n--- [Step 1] Starting Server (Initial) ---")
    proc = start_server(echo=True)
    
    try:
        if not wait_for_server():
            server_logs = proc.communicate(timeout=2)
            print("Server Stdout:", server_logs[0].decode())
            print("Server Stderr:", server_logs[1].decode())
            raise Exception("Server start failed")

        # 2. Book a trip
        print("\n--- [Step 2] Booking Trip (Persistence Test) ---")
        trip_payload = {
            "provider_id": PROVIDER_ID,
            "customer_id": CUSTOMER_ID,
            "vehicle_id": VEHICLE_ID,
            "pickup_time": f"{day.isoformat()} 09:00",
            "appointment_time": f"{day.isoformat()} 09:30",
            "pickup_address": "100 Main St",
            "dropoff_address": "200 Clinic Rd",
            "trip_purpose": "Medical"
        }
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/trips", json=trip_payload)
        
        if resp.status_code == 201:
            trip = resp.json()
            print(f"✅ Trip booked on run {trip['run_id']}")
        else:
            print(f"❌ Booking Failed: {resp.status_code} {resp.text}")
            raise Exception("Booking failed")

    finally:
        print("\n--- [Step 3] Stopping Server ---")
        proc.send_signal(signal.SIGTERM)
        proc.wait()
    
    time.sleep(2) # Wait for port release

    # 3. Restart Server
    print("\n--- [Step 4] Restarting Server (Verification) ---")
    proc2 = start_server()

    try:
        if not wait_for_server():
            raise Exception("Server restart failed")

        # 4. Trip and run survive the restart
        print("\n--- [Step 5] Reading Trip (Post-Restart) ---")
        resp = httpx.get(f"{BASE_URL}{API_PREFIX}/trips/{trip['id']}")
        if resp.status_code != 200 or resp.json()["run_id"] != trip["run_id"]:
            raise Exception(f"Trip not persisted: {resp.status_code} {resp.text}")
        print("✅ Trip Persisted")

        print("\n--- [Step 6] Reading Run ---")
        resp = httpx.get(f"{BASE_URL}{API_PREFIX}/runs/{trip['run_id']}")
        if resp.status_code == 200 and trip["id"] in resp.json()["trip_ids"]:
            print("✅ Run Persisted")
            print(resp.json())
        else:
            print(f"❌ Run Check Failed: {resp.status_code} {resp.text}")

    finally:
        print("\n--- [Step 7] Stopping Server ---")
        proc2.send_signal(signal.SIGTERM)
        proc2.wait()

if __name__ == "__main__":
    run_verification()
