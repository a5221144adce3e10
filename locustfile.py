"""
Locust load test for the gateway.

Readers browse tables across several databases at once, so concurrent
requests borrow connections from different database pools. Editors insert,
update and delete rows in a scratch table created on start.

Run with:

    locust -f locustfile.py --host=http://localhost:3000

Headless
    locust -f locustfile.py --host=http://localhost:3000 --users 50 --spawn-rate 5 --run-time 2m --headless
"""

from locust import HttpUser, task, between, SequentialTaskSet
from uuid import uuid4
import random
import os
from pathlib import Path
from dotenv import load_dotenv

# Load config
ENV_FILE = Path(__file__).parent / ".env"
if ENV_FILE.exists():
    load_dotenv(ENV_FILE)

# Databases to spread readers over; defaults to every database the gateway lists
LOAD_DATABASES = [d for d in os.environ.get("LOAD_DATABASES", "").split(",") if d]
SCRATCH_DATABASE = os.environ.get("DB_NAME", "postgres")


class ReaderBehavior(SequentialTaskSet):
    """Walks databases → tables → structure → pages."""
    known = []  # (database, table)

    def on_start(self):
        databases = LOAD_DATABASES
        if not databases:
            with self.client.get("/api/databases", catch_response=True, name="/api/databases") as r:
                if r.status_code == 200:
                    databases = [row["Database"] for row in r.json()]
                    r.success()
        self.known = []
        for database in databases:
            with self.client.get("/api/tables", params={"database": database}, catch_response=True, name="/api/tables") as r:
                if r.status_code == 200:
                    self.known.extend((database, t["table_name"]) for t in r.json()["tables"])
                    r.success()
                else:
                    # Databases the user cannot connect to are skipped
                    r.success()

    @task
    def structure(self):
        if not self.known: return
        database, table = random.choice(self.known)
        self.client.get(f"/api/table/{table}/structure", params={"database": database}, name="/api/table/{table}/structure")

    @task
    def first_page(self):
        if not self.known: return
        database, table = random.choice(self.known)
        with self.client.get(f"/api/table/{table}/rows", params={"database": database, "limit": 50, "offset": 0}, catch_response=True, name="/api/table/{table}/rows") as r:
            if r.status_code != 200:
                r.failure(f"Got {r.status_code}")
            elif r.json()["database"] != database:
                r.failure("Answered from the wrong database")
            elif len(r.json()["rows"]) > 50:
                r.failure("Page larger than limit")
            else:
                r.success()


class EditorBehavior(SequentialTaskSet):
    """Inserts, edits and deletes rows in the scratch table."""
    row_ids = []
    table = None

    def _rows_path(self, *parts):
        return "/".join([f"/api/table/{self.table}/rows", *map(str, parts)])

    def on_start(self):
        self.row_ids = []
        self.table = f"locust_{uuid4().hex[:8]}"
        self.client.post("/api/query", json={
            "database": SCRATCH_DATABASE,
            "sql": f"CREATE TABLE IF NOT EXISTS {self.table} (id SERIAL PRIMARY KEY, name TEXT, value INTEGER)"
        }, name="/api/query [Create]")

    @task(3)
    def insert_row(self):
        with self.client.post(self._rows_path(), params={"database": SCRATCH_DATABASE}, json={"name": f"Item-{uuid4().hex[:6]}", "value": random.randint(1, 1000)}, catch_response=True, name="/api/table/{table}/rows [Insert]") as r:
            if r.status_code == 200 and r.json().get("insertedId") is not None:
                self.row_ids.append(r.json()["insertedId"]); r.success()
            else: r.failure(f"Got {r.status_code}")

    @task(2)
    def update_row(self):
        if not self.row_ids: return
        rid = random.choice(self.row_ids)
        self.client.put(self._rows_path(rid), params={"database": SCRATCH_DATABASE}, json={"value": random.randint(1, 1000)}, name="/api/table/{table}/rows/{id} [Update]")

    @task(1)
    def delete_row(self):
        if len(self.row_ids) < 5: return
        rid = self.row_ids.pop(0)
        self.client.delete(self._rows_path(rid), params={"database": SCRATCH_DATABASE}, name="/api/table/{table}/rows/{id} [Delete]")

    def on_stop(self):
        self.client.post("/api/query", json={"database": SCRATCH_DATABASE, "sql": f"DROP TABLE IF EXISTS {self.table}"}, name="/api/query [Drop]")


class Reader(HttpUser):
    tasks = [ReaderBehavior]
    wait_time = between(1, 3)
    weight = 5


class Editor(HttpUser):
    tasks = [EditorBehavior]
    wait_time = between(2, 5)
    weight = 1
