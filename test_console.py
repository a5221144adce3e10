"""Tests for the console's view logic and its session against an in-memory gateway."""

import asyncio
import json
import re

import httpx
import pytest

from console import ConsoleSession, GatewayClient, GatewayError, MissingRowIdError, ViewState
from console.view import compare_values, filter_rows, page_info, parse_number, sort_rows


# ─────────────────────────────────────────────────────────────────────────────
# Sort / Filter / Paging
# ─────────────────────────────────────────────────────────────────────────────

class TestCompareValues:

    def test_numbers_compare_numerically(self):
        assert compare_values("9", "10") == -1
        assert compare_values(10, "9.5") == 1
        assert compare_values("2.0", 2) == 0

    def test_numeric_prefix_counts_as_number(self):
        assert parse_number("12px") == 12.0
        assert parse_number("  -3.5e2 apples") == -350.0
        assert parse_number("abc") is None
        assert parse_number(None) is None

    def test_text_compares_case_insensitively(self):
        assert compare_values("apple", "Banana") == -1
        assert compare_values("ZEBRA", "zebra") == 0

    def test_mixed_values_fall_back_to_text(self):
        # "10" < "a" as text
        assert compare_values("10", "a") == -1
        assert compare_values(None, "a") == -1


class TestSortRows:

    rows = [
        {"id": 3, "name": "charlie", "score": "10"},
        {"id": 1, "name": "Alpha", "score": "9"},
        {"id": 2, "name": "bravo", "score": "100"},
    ]

    def test_numeric_column(self):
        assert [r["id"] for r in sort_rows(self.rows, "score")] == [1, 3, 2]

    def test_text_column_descending(self):
        assert [r["name"] for r in sort_rows(self.rows, "name", "desc")] == ["charlie", "bravo", "Alpha"]

    def test_sorting_twice_is_idempotent(self):
        once = sort_rows(self.rows, "name")
        assert sort_rows(once, "name") == once

    def test_does_not_mutate_input(self):
        before = list(self.rows)
        sort_rows(self.rows, "id")
        assert self.rows == before


class TestFilterRows:

    rows = [
        {"id": 1, "name": "Lamp", "note": None},
        {"id": 2, "name": "Desk", "note": "oak"},
        {"id": 12, "name": "Chair", "note": "OAK veneer"},
    ]

    def test_matches_any_column_ignoring_case(self):
        assert [r["id"] for r in filter_rows(self.rows, "Oak")] == [2, 12]

    def test_numbers_match_by_string_form(self):
        assert [r["id"] for r in filter_rows(self.rows, "2")] == [2, 12]

    def test_blank_filter_keeps_everything(self):
        assert filter_rows(self.rows, "   ") == self.rows

    def test_null_never_matches_text(self):
        assert filter_rows(self.rows, "none") == []

    def test_row_kept_iff_some_value_contains_needle(self):
        needle = "a"
        kept = filter_rows(self.rows, needle)
        for row in self.rows:
            contains = any(needle in ("" if v is None else str(v)).lower() for v in row.values())
            assert (row in kept) == contains


def test_page_info_for_120_rows():
    info = page_info(offset=0, limit=50, total=120)

    assert (info.page, info.pages) == (1, 3)
    assert info.text == "Page 1 / 3 · 120 rows"
    assert page_info(offset=100, limit=50, total=120).page == 3
    assert page_info(offset=0, limit=50, total=0).pages == 1


class TestViewState:

    def test_switching_database_resets_view(self):
        state = ViewState(database="shop", table="products", offset=100, filter="lamp")
        state.toggle_sort("name")
        state.set_rows([{"id": 1}])

        state.select_database("warehouse")

        assert state.database == "warehouse"
        assert state.table is None
        assert state.offset == 0
        assert state.sort.column is None
        assert state.filter == ""
        assert state.rows == []

    def test_switching_table_resets_view(self):
        state = ViewState(database="shop", table="products", offset=50, filter="x")
        state.toggle_sort("id")

        state.select_table("orders")

        assert state.table == "orders"
        assert state.database == "shop"
        assert (state.offset, state.sort.column, state.filter) == (0, None, "")

    def test_toggle_sort(self):
        state = ViewState()
        state.toggle_sort("name")
        assert (state.sort.column, state.sort.direction) == ("name", "asc")
        state.toggle_sort("name")
        assert state.sort.direction == "desc"
        state.toggle_sort("id")
        assert (state.sort.column, state.sort.direction) == ("id", "asc")

    def test_paging_never_goes_negative(self):
        state = ViewState(limit=50)
        state.next_page()
        state.next_page()
        assert state.offset == 100
        state.prev_page()
        state.prev_page()
        state.prev_page()
        assert state.offset == 0

    def test_visible_rows_keep_their_keys(self):
        state = ViewState()
        state.set_rows([{"id": 1, "name": "b"}, {"id": 2, "name": "a"}, {"id": 3, "name": "c"}])
        state.toggle_sort("name")
        state.toggle_sort("name")

        assert [e.key for e in state.visible_rows()] == [2, 0, 1]

        state.filter = "A"
        assert [e.key for e in state.visible_rows()] == [1]


# ─────────────────────────────────────────────────────────────────────────────
# Session against an in-memory gateway
# ─────────────────────────────────────────────────────────────────────────────

class FakeGateway:
    """Answers the gateway's routes from dictionaries and counts requests."""

    def __init__(self):
        self.data = {
            "shop": {
                "products": [{"id": i, "name": f"Item {i}", "price": i * 3} for i in range(1, 121)],
                "tags": [{"label": "sale"}, {"label": "new"}],
            },
            "warehouse": {
                "bins": [{"id": 1, "code": "A1"}],
            },
        }
        self.requests = []
        self.bodies = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        if request.content:
            self.bodies.append(json.loads(request.content))
        params = request.url.params
        database = params.get("database")
        path = request.url.path

        if path == "/api/databases":
            return httpx.Response(200, json=[{"Database": name} for name in self.data])
        if path == "/api/tables":
            return httpx.Response(200, json={
                "database": database,
                "tables": [{"table_name": name} for name in self.data[database]],
            })
        if path == "/api/query":
            body = json.loads(request.content)
            if body["sql"].upper().startswith("SELECT"):
                return httpx.Response(200, json={"database": body.get("database"), "rows": [{"one": 1}], "fields": ["one"], "rowCount": 1})
            if body["sql"].upper().startswith("BOOM"):
                return httpx.Response(500, json={"error": 'syntax error at or near "BOOM"'})
            return httpx.Response(200, json={"database": body.get("database"), "rows": [], "fields": [], "rowCount": 0})

        match = re.fullmatch(r"/api/table/([^/]+)/(structure|rows)(?:/([^/]+))?", path)
        if not match:
            return httpx.Response(404, json={"error": "Not Found"})
        table, kind, row_id = match.groups()
        rows = self.data[database].get(table)
        if rows is None:
            return httpx.Response(500, json={"error": f'relation "{table}" does not exist'})

        if kind == "structure":
            columns = [{"Field": c, "Type": "text", "Null": "YES", "Key": "", "Default": None, "Extra": ""} for c in rows[0]]
            return httpx.Response(200, json={"database": database, "table": table, "columns": columns})

        if request.method == "GET":
            limit, offset = int(params.get("limit", 50)), int(params.get("offset", 0))
            return httpx.Response(200, json={
                "database": database, "table": table,
                "rows": rows[offset:offset + limit], "total": len(rows),
                "limit": limit, "offset": offset,
            })
        if request.method == "POST":
            row = json.loads(request.content)
            row["id"] = len(rows) + 1
            rows.append(row)
            return httpx.Response(200, json={"success": True, "insertedId": row["id"]})

        matched = [r for r in rows if str(r.get("id")) == row_id]
        if request.method == "PUT":
            for row in matched:
                row.update(json.loads(request.content))
        else:
            for row in matched:
                rows.remove(row)
        return httpx.Response(200, json={"success": True, "affectedRows": len(matched)})


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def session(gateway):
    client = GatewayClient(base_url="http://gateway", transport=httpx.MockTransport(gateway.handler))
    return ConsoleSession(client)


def run(coro):
    return asyncio.run(coro)


class TestConsoleSession:

    def test_initial_load_opens_first_table(self, session):
        run(session.load_databases())

        assert session.databases == ["shop", "warehouse"]
        assert session.status == "Connected to shop"
        assert session.tables == ["products", "tags"]
        assert session.state.table == "products"
        assert [c["Field"] for c in session.columns] == ["id", "name", "price"]
        assert len(session.state.rows) == 50
        assert session.page_text == "Page 1 / 3 · 120 rows"

    def test_paging_refetches(self, session):
        run(session.load_databases())
        run(session.next_page())

        assert session.state.offset == 50
        assert session.state.rows[0].original["id"] == 51
        assert session.page.page == 2

        run(session.prev_page())
        assert session.state.rows[0].original["id"] == 1

    def test_filter_and_sort_do_not_refetch(self, session, gateway):
        run(session.load_databases())
        requests_before = len(gateway.requests)

        session.set_filter("item 1")
        session.toggle_sort("id")
        session.toggle_sort("id")
        visible = session.visible_rows()

        assert len(gateway.requests) == requests_before
        ids = [e.original["id"] for e in visible]
        assert ids == sorted(ids, reverse=True)
        assert all("item 1" in e.original["name"].lower() for e in visible)

    def test_switching_database(self, session):
        run(session.load_databases())
        session.set_filter("x")
        run(session.next_page())

        run(session.select_database("warehouse"))

        assert session.state.database == "warehouse"
        assert session.state.table == "bins"
        assert session.state.offset == 0
        assert session.state.filter == ""
        assert session.state.sort.column is None

    def test_save_row_submits_staged_edits(self, session, gateway):
        run(session.load_databases())
        entry = next(e for e in session.state.rows if e.original["id"] == 7)

        session.stage_edit(entry.key, "name", "X")
        result = run(session.save_row(entry.key))

        assert result == {"success": True, "affectedRows": 1}
        assert gateway.data["shop"]["products"][6]["name"] == "X"
        refreshed = next(e for e in session.state.rows if e.original["id"] == 7)
        assert refreshed.original["name"] == "X"

    def test_save_row_sends_only_edited_columns(self, session, gateway):
        run(session.load_databases())
        entry = next(e for e in session.state.rows if e.original["id"] == 7)

        session.stage_edit(entry.key, "name", "X")
        run(session.save_row(entry.key))

        assert gateway.requests[-2] == ("PUT", "/api/table/products/rows/7")
        assert gateway.bodies[-1] == {"name": "X"}

    def test_save_row_without_changes_sends_nothing(self, session, gateway):
        run(session.load_databases())
        entry = next(e for e in session.state.rows if e.original["id"] == 7)
        requests_before = len(gateway.requests)

        session.stage_edit(entry.key, "name", "Item 7")

        assert run(session.save_row(entry.key)) is None
        assert len(gateway.requests) == requests_before

    def test_editing_first_column_still_updates_the_right_row(self, session, gateway):
        run(session.load_databases())
        entry = next(e for e in session.state.rows if e.original["id"] == 3)

        session.stage_edit(entry.key, "id", "3")
        session.stage_edit(entry.key, "price", 1000)
        run(session.save_row(entry.key))

        assert gateway.requests[-2] == ("PUT", "/api/table/products/rows/3")
        assert gateway.data["shop"]["products"][2]["price"] == 1000

    def test_delete_row(self, session, gateway):
        run(session.load_databases())
        key = session.state.rows[0].key

        result = run(session.delete_row(key))

        assert result["affectedRows"] == 1
        assert session.total == 119

    def test_rows_without_id_are_rejected_before_any_request(self, session, gateway):
        run(session.load_databases())
        run(session.select_table("tags"))
        requests_before = len(gateway.requests)
        key = session.state.rows[0].key

        with pytest.raises(MissingRowIdError):
            run(session.save_row(key))
        with pytest.raises(MissingRowIdError):
            run(session.delete_row(key))
        assert len(gateway.requests) == requests_before

    def test_rows_with_null_id_are_rejected(self, session, gateway):
        run(session.load_databases())
        session.state.set_rows([{"id": None, "name": "draft"}])
        requests_before = len(gateway.requests)

        session.stage_edit(0, "name", "final")
        with pytest.raises(MissingRowIdError):
            run(session.save_row(0))
        with pytest.raises(MissingRowIdError):
            run(session.delete_row(0))
        assert len(gateway.requests) == requests_before

    def test_insert_row(self, session, gateway):
        run(session.load_databases())

        result = run(session.insert_row({"name": "New", "price": 1}))

        assert result == {"success": True, "insertedId": 121}
        assert session.total == 121

    def test_load_failure_sets_status(self, session):
        run(session.load_databases())
        run(session.select_table("missing"))

        assert session.status == "Error loading rows"

    def test_run_sql(self, session):
        run(session.load_databases())

        select = run(session.run_sql("SELECT 1"))
        update = run(session.run_sql("UPDATE products SET price = 0"))
        failed = run(session.run_sql("BOOM"))

        assert select.rows == [{"one": 1}]
        assert select.fields == ["one"]
        assert update.message == "Query executed (no rows)."
        assert failed.error == 'syntax error at or near "BOOM"'
        assert run(session.run_sql("   ")) is None


def test_client_raises_gateway_error_with_message():
    transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"error": "sql is required"}))
    client = GatewayClient(base_url="http://gateway", transport=transport)

    with pytest.raises(GatewayError) as exc_info:
        run(client.run_query(""))

    assert exc_info.value.message == "sql is required"
    assert exc_info.value.status_code == 400


def test_client_falls_back_to_response_text():
    transport = httpx.MockTransport(lambda request: httpx.Response(502, text="Bad gateway"))
    client = GatewayClient(base_url="http://gateway", transport=transport)

    with pytest.raises(GatewayError) as exc_info:
        run(client.list_databases())

    assert exc_info.value.message == "Bad gateway"


def test_empty_catalog_rows_are_skipped():
    def handler(request):
        if request.url.path == "/api/databases":
            return httpx.Response(200, json=[{}, {"Database": "shop"}])
        return httpx.Response(200, json={"database": "shop", "tables": [{}]})

    session = ConsoleSession(GatewayClient(base_url="http://gateway", transport=httpx.MockTransport(handler)))
    run(session.load_databases())

    assert session.databases == ["shop"]
    assert session.tables == []
    assert session.state.table is None
