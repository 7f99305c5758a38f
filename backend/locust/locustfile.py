"""
Locust load tests for EventHub.

Run scenarios:
  locust -f locustfile.py --tags contention   # Many users, few spots
  locust -f locustfile.py --tags throughput   # Anonymous listing cache
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # Everything
"""

import random
import string
from datetime import datetime, timedelta, timezone

from locust import HttpUser, between, tag, task

PASSWORD = "LoadTest123"
CONTENTION_CAPACITY = 10

# Shared state
EVENT_IDS: list[int] = []
CONTENTION_EVENT_ID = None


def random_email():
    return f"load_{random.randint(100000, 999999)}@test.com"


def random_username():
    return "u_" + "".join(random.choices(string.ascii_lowercase, k=10))


def event_payload(title: str, capacity: int, status: str = "published") -> dict:
    start = datetime.now(timezone.utc) + timedelta(days=random.randint(1, 90))
    return {
        "title": title,
        "description": "Load test event generated by locust",
        "category": random.choice(["conference", "workshop", "concert", "sport", "networking"]),
        "status": status,
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(hours=3)).isoformat(),
        "location": {"address": "1 Load Street", "city": random.choice(["Paris", "Lyon", "Lille"])},
        "capacity": capacity,
        "price": random.choice([0, 10, 25]),
    }


class AuthenticatedUser(HttpUser):
    abstract = True

    def on_start(self):
        email = random_email()
        self.client.post("/api/v1/auth/register", json={
            "email": email,
            "username": random_username(),
            "password": PASSWORD,
        })
        resp = self.client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
        if resp.status_code == 200:
            self.headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}
        else:
            self.headers = {}


class ContentionUser(AuthenticatedUser):
    """
    Many users register for one event with 10 spots.

    Run: locust -f locustfile.py --tags contention -u 100 -r 50 --run-time 30s

    Afterwards:
      SELECT registration_count, capacity FROM events WHERE id = X;
      SELECT COUNT(*) FROM registrations WHERE event_id = X AND status = 'confirmed';
    Both counts must be equal and <= 10.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        super().on_start()
        global CONTENTION_EVENT_ID
        if CONTENTION_EVENT_ID is None and self.headers:
            resp = self.client.post(
                "/api/v1/events/",
                json=event_payload("Contention Test Event", CONTENTION_CAPACITY),
                headers=self.headers,
            )
            if resp.status_code == 201:
                CONTENTION_EVENT_ID = resp.json()["id"]
                print(f"\nCreated event {CONTENTION_EVENT_ID} with {CONTENTION_CAPACITY} spots\n")

    @tag("contention")
    @task(5)
    def register(self):
        if CONTENTION_EVENT_ID is None or not self.headers:
            return
        with self.client.post(
            f"/api/v1/events/{CONTENTION_EVENT_ID}/register",
            headers=self.headers,
            name="/api/v1/events/{id}/register",
            catch_response=True,
        ) as resp:
            # 409 is EVENT_FULL or ALREADY_REGISTERED, both expected here
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("contention")
    @task(1)
    def unregister(self):
        if CONTENTION_EVENT_ID is None or not self.headers:
            return
        with self.client.delete(
            f"/api/v1/events/{CONTENTION_EVENT_ID}/register",
            headers=self.headers,
            name="/api/v1/events/{id}/register [delete]",
            catch_response=True,
        ) as resp:
            if resp.status_code in (200, 400):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    Anonymous browsing, served from the Redis listing cache.

    Run with and without Redis (REDIS_ENABLED=false) and compare
    requests/sec and P95 latency.
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_events_cached(self):
        page = random.randint(1, 5)
        resp = self.client.get(f"/api/v1/events/?page={page}&limit=20", name="/api/v1/events/ [anonymous]")
        if resp.status_code == 200:
            for event in resp.json().get("items", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @tag("throughput", "read")
    @task(3)
    def search_events(self):
        term = random.choice(["load", "paris", "event"])
        self.client.get(f"/api/v1/events/?search={term}&sort=start_date", name="/api/v1/events/?search")

    @tag("throughput", "read")
    @task(3)
    def get_event_detail(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", name="/api/v1/events/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(AuthenticatedUser):
    """
    Bad input must produce 4xx, never a 500.

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s
    """
    wait_time = between(0.5, 1.5)

    def _expect(self, resp, allowed):
        if resp.status_code in allowed:
            resp.success()
        else:
            resp.failure(f"Expected {allowed}, got {resp.status_code}")

    @tag("edge")
    @task
    def register_missing_event(self):
        with self.client.post(
            "/api/v1/events/999999/register", headers=self.headers, catch_response=True,
        ) as resp:
            self._expect(resp, (404,))

    @tag("edge")
    @task
    def unknown_sort_field(self):
        with self.client.get("/api/v1/events/?sort=password", catch_response=True) as resp:
            self._expect(resp, (422,))

    @tag("edge")
    @task
    def zero_capacity(self):
        with self.client.post(
            "/api/v1/events/", json=event_payload("Zero capacity", 0), headers=self.headers, catch_response=True,
        ) as resp:
            self._expect(resp, (422,))

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/events/", data="not json at all", headers=self.headers, catch_response=True,
        ) as resp:
            self._expect(resp, (400, 422))

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post("/api/v1/events/1/register", catch_response=True) as resp:
            self._expect(resp, (401,))


class RealisticUser(AuthenticatedUser):
    """
    Mixed workload: mostly browsing, some registrations, rare event creation.

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s
    """
    wait_time = between(1, 3)

    @task(50)
    def browse_events(self):
        resp = self.client.get("/api/v1/events/?page=1&limit=20", headers=self.headers)
        if resp.status_code == 200:
            for event in resp.json().get("items", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @task(20)
    def view_event(self):
        if EVENT_IDS:
            self.client.get(
                f"/api/v1/events/{random.choice(EVENT_IDS)}", headers=self.headers, name="/api/v1/events/{id}",
            )

    @task(10)
    def register(self):
        if EVENT_IDS and self.headers:
            self.client.post(
                f"/api/v1/events/{random.choice(EVENT_IDS)}/register",
                headers=self.headers,
                name="/api/v1/events/{id}/register",
            )

    @task(3)
    def create_event(self):
        if self.headers:
            resp = self.client.post(
                "/api/v1/events/",
                json=event_payload(f"Event {random.randint(1, 10000)}", random.randint(10, 500)),
                headers=self.headers,
            )
            if resp.status_code == 201:
                EVENT_IDS.append(resp.json()["id"])
