"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test overbooking
  locust -f locustfile.py --tags throughput   # Test calendar reads
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests

Environment:
  ADMIN_API_KEY   must match the server's, used to sync test resources
"""

import os
import random
from datetime import date, timedelta

import httpx
from locust import HttpUser, task, between, tag, events

ADMIN_HEADERS = {"X-Admin-Key": os.environ.get("ADMIN_API_KEY", "change-me-in-production")}

# Exclusive room: every contested day admits exactly one lock
CONTESTED_ROOM_ID = 9001
# Shared pool: 10 desks per day
DESK_POOL_ID = 9002
DESK_POOL_CAPACITY = 10

CONTESTED_DAY = (date.today() + timedelta(days=14)).isoformat()


def future_day(max_days: int = 60) -> str:
    return (date.today() + timedelta(days=random.randint(2, max_days))).isoformat()


def current_month() -> str:
    return date.today().strftime("%Y-%m")


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Setup: sync the resources the scenarios fight over."""
    print("\n" + "="*60)
    print("SETUP: Syncing load-test resources...")
    print("="*60)

    host = environment.host.rstrip("/")
    for resource_id, title, capacity in (
        (CONTESTED_ROOM_ID, "Load test room", 1),
        (DESK_POOL_ID, "Load test desks", DESK_POOL_CAPACITY),
    ):
        resp = httpx.put(
            f"{host}/api/v1/admin/resources/{resource_id}",
            json={"title": title, "capacity": capacity, "prices": {"day": 25}},
            headers=ADMIN_HEADERS,
            timeout=10,
        )
        print(f"  resource {resource_id} (capacity {capacity}): {resp.status_code}")


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users -> 1 room, 1 day

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      GET /api/v1/admin/resources/9001/locks
    Should list at most 1 lock covering the contested day
    """
    wait_time = between(0, 0.1)

    @tag("concurrency")
    @task(3)
    def reserve_contested_day(self):
        """All users fight for the same room on the same day."""
        with self.client.post("/api/v1/reservations",
            json={"resource_id": CONTESTED_ROOM_ID, "tier": "day",
                  "start": CONTESTED_DAY, "end": CONTESTED_DAY},
            catch_response=True,
            name="/api/v1/reservations [contested]",
        ) as resp:
            if resp.status_code == 200:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: held or storage conflict
            elif resp.status_code == 503:
                resp.success()  # No order system behind the load test
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("concurrency")
    @task(1)
    def reserve_desk(self):
        """Shared pool: at most DESK_POOL_CAPACITY locks per day."""
        day = future_day(7)
        with self.client.post("/api/v1/reservations",
            json={"resource_id": DESK_POOL_ID, "tier": "day", "start": day, "end": day},
            catch_response=True,
            name="/api/v1/reservations [pool]",
        ) as resp:
            if resp.status_code in (200, 409, 503):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Calendar reads computed per request

    Run twice:
      1. STORAGE_BACKEND=redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. STORAGE_BACKEND=memory: run again (single worker)

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def month_availability(self):
        """Hammer the calendar endpoint."""
        resource_id = random.choice([CONTESTED_ROOM_ID, DESK_POOL_ID])
        self.client.get(f"/api/v1/availability/{resource_id}?month={current_month()}",
            name="/api/v1/availability/{id} [month]")

    @tag("throughput", "read")
    @task(3)
    def calculate_price(self):
        day = future_day()
        self.client.post("/api/v1/availability/calculate-price",
            json={"resource_id": DESK_POOL_ID, "tier": "day", "start_date": day},
            name="/api/v1/availability/calculate-price")

    @tag("throughput")
    @task(1)
    def health_check(self):
        """Monitor system health."""
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_resource(self):
        with self.client.get("/api/v1/availability/999999?month=2025-06",
            catch_response=True, name="/api/v1/availability [unknown]") as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def malformed_month(self):
        with self.client.get(f"/api/v1/availability/{DESK_POOL_ID}?month=June",
            catch_response=True, name="/api/v1/availability [bad month]") as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def reserve_today(self):
        """Lead time: today is never bookable."""
        today = date.today().isoformat()
        with self.client.post("/api/v1/reservations",
            json={"resource_id": DESK_POOL_ID, "tier": "day", "start": today, "end": today},
            catch_response=True, name="/api/v1/reservations [today]") as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def reversed_range(self):
        with self.client.post("/api/v1/reservations",
            json={"resource_id": DESK_POOL_ID, "tier": "day",
                  "start": future_day(), "end": date.today().isoformat()},
            catch_response=True, name="/api/v1/reservations [reversed]") as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def malformed_json(self):
        """Send garbage data."""
        with self.client.post("/api/v1/reservations",
            data="not json at all",
            catch_response=True, name="/api/v1/reservations [garbage]") as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_admin_key(self):
        with self.client.post("/api/v1/admin/maintenance", catch_response=True) as resp:
            self._expect(resp, [401])


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly browsing the calendar (80%)
      - Some price checks (15%)
      - Rare reservation attempts (5%)
    """
    wait_time = between(1, 3)

    @task(16)
    def browse_calendar(self):
        self.client.get(f"/api/v1/availability/{DESK_POOL_ID}?month={current_month()}",
            name="/api/v1/availability/{id}")

    @task(3)
    def check_price(self):
        day = future_day()
        self.client.post("/api/v1/availability/calculate-price",
            json={"resource_id": DESK_POOL_ID, "tier": "day", "start_date": day},
            name="/api/v1/availability/calculate-price")

    @task(1)
    def reserve(self):
        day = future_day()
        with self.client.post("/api/v1/reservations",
            json={"resource_id": DESK_POOL_ID, "tier": "day", "start": day, "end": day},
            catch_response=True, name="/api/v1/reservations") as resp:
            if resp.status_code in (200, 409, 503):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")
