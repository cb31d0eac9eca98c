from datetime import datetime


def parse_ts(value: str) -> datetime:
    # Pydantic renders UTC as a trailing 'Z'
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def create_task(client, title="Test Task", **fields):
    payload = {"title": title, **fields}
    res = client.post("/api/tasks", json=payload)
    assert res.status_code == 201, res.text
    return res.json()


def assert_task_shape(task: dict):
    for key in ["id", "title", "completed", "created_at", "due_date", "priority"]:
        assert key in task
    assert isinstance(task["id"], int)
    assert isinstance(task["title"], str)
    assert isinstance(task["completed"], bool)
    assert task["priority"] in (0, 1, 2)
    parse_ts(task["created_at"])


class TestHealth:
    def test_health_check(self, client):
        res = client.get("/api/health")
        assert res.status_code == 200
        assert res.json() == {"status": "ok"}

    def test_version(self, client):
        res = client.get("/api/version")
        assert res.status_code == 200
        assert res.json() == {"version": "1.0.0", "service": "tasks-api"}

    def test_unknown_path_is_not_found_outside_demo_mode(self, client):
        res = client.get("/unknown")
        assert res.status_code == 404


class TestTasksCRUD:
    def test_create_task_defaults(self, client):
        task = create_task(client, title="  Buy milk  ")
        assert_task_shape(task)
        # Title is trimmed
        assert task["title"] == "Buy milk"
        assert task["completed"] is False
        assert task["due_date"] is None
        assert task["priority"] == 1

    def test_create_task_with_due_date_and_priority(self, client):
        task = create_task(client, title="Pay bills", due_date="2099-12-25", priority=2)
        assert task["due_date"] == "2099-12-25"
        assert task["priority"] == 2

    def test_create_accepts_datetime_due_date(self, client):
        task = create_task(client, title="Dentist", due_date="2099-03-04T09:30:00")
        assert task["due_date"] == "2099-03-04"

    def test_blank_due_date_means_none(self, client):
        task = create_task(client, title="Someday", due_date="")
        assert task["due_date"] is None

    def test_ids_are_unique_and_increasing(self, client):
        ids = [create_task(client, title=f"Task {i}")["id"] for i in range(5)]
        assert len(set(ids)) == 5
        assert ids == sorted(ids)

    def test_get_task_and_not_found(self, client):
        task = create_task(client, title="Read book")
        res = client.get(f"/api/tasks/{task['id']}")
        assert res.status_code == 200
        assert res.json() == task

        res_404 = client.get("/api/tasks/999999")
        assert res_404.status_code == 404
        assert res_404.json() == {"error": "not found"}

    def test_patch_partial_update(self, client):
        task = create_task(client, title="Partial", due_date="2099-01-01", priority=0)

        res = client.patch(f"/api/tasks/{task['id']}", json={"title": " Partial Updated ", "completed": True})
        assert res.status_code == 200
        patched = res.json()
        assert patched["id"] == task["id"]
        assert patched["title"] == "Partial Updated"
        assert patched["completed"] is True
        # Untouched fields keep their values
        assert patched["due_date"] == "2099-01-01"
        assert patched["priority"] == 0
        assert patched["created_at"] == task["created_at"]

    def test_patch_clears_due_date_with_explicit_null(self, client):
        task = create_task(client, title="Deadline", due_date="2099-01-01")
        res = client.patch(f"/api/tasks/{task['id']}", json={"due_date": None})
        assert res.status_code == 200
        assert res.json()["due_date"] is None

    def test_patch_priority(self, client):
        task = create_task(client, title="Urgent")
        res = client.patch(f"/api/tasks/{task['id']}", json={"priority": 2})
        assert res.status_code == 200
        assert res.json()["priority"] == 2

    def test_toggle_completed_twice_restores_state(self, client):
        task = create_task(client, title="Toggle me")
        first = client.patch(f"/api/tasks/{task['id']}", json={"completed": not task["completed"]}).json()
        second = client.patch(f"/api/tasks/{task['id']}", json={"completed": not first["completed"]}).json()
        assert first["completed"] is True
        assert second == task

    def test_patch_not_found(self, client):
        res = client.patch("/api/tasks/123456", json={"title": "Nope"})
        assert res.status_code == 404
        assert res.json() == {"error": "not found"}

        # Ids beyond the 64-bit row id range cannot exist either
        huge = "99999999999999999999999"
        res_huge = client.patch(f"/api/tasks/{huge}", json={"title": "Nope"})
        assert res_huge.status_code == 404
        assert res_huge.json() == {"error": "not found"}
        assert client.get(f"/api/tasks/{huge}").status_code == 404

    def test_delete_task(self, client):
        task = create_task(client, title="ToDelete")
        keep = create_task(client, title="Keep")

        res_del = client.delete(f"/api/tasks/{task['id']}")
        assert res_del.status_code == 204
        assert res_del.text == ""

        # Gone from the list and from direct lookup
        ids = [t["id"] for t in client.get("/api/tasks").json()]
        assert ids == [keep["id"]]
        assert client.get(f"/api/tasks/{task['id']}").status_code == 404

        # Deleting again is 404
        res_again = client.delete(f"/api/tasks/{task['id']}")
        assert res_again.status_code == 404
        assert res_again.json() == {"error": "not found"}

        res_huge = client.delete("/api/tasks/99999999999999999999999")
        assert res_huge.status_code == 404
        assert res_huge.json() == {"error": "not found"}


class TestListFilteringSorting:
    def seed(self, client):
        a = create_task(client, title="Alpha report", due_date="2099-05-01", priority=0)
        b = create_task(client, title="Beta groceries", priority=2)
        c = create_task(client, title="Gamma REPORT", due_date="2099-01-01", priority=1)
        client.patch(f"/api/tasks/{b['id']}", json={"completed": True})
        return a, b, c

    def ids(self, client, query=""):
        res = client.get(f"/api/tasks{query}")
        assert res.status_code == 200, res.text
        return [t["id"] for t in res.json()]

    def test_default_order_is_newest_first(self, client):
        a, b, c = self.seed(client)
        assert self.ids(client) == [c["id"], b["id"], a["id"]]
        items = client.get("/api/tasks").json()
        created = [parse_ts(t["created_at"]) for t in items]
        assert created == sorted(created, reverse=True)

    def test_created_at_ascending(self, client):
        a, b, c = self.seed(client)
        assert self.ids(client, "?sort=created_at&order=asc") == [a["id"], b["id"], c["id"]]

    def test_status_filter(self, client):
        a, b, c = self.seed(client)
        assert self.ids(client, "?status=active") == [c["id"], a["id"]]
        assert self.ids(client, "?status=completed") == [b["id"]]
        assert self.ids(client, "?status=all") == [c["id"], b["id"], a["id"]]

    def test_search_is_case_insensitive_substring(self, client):
        a, b, c = self.seed(client)
        assert self.ids(client, "?search=report") == [c["id"], a["id"]]
        assert self.ids(client, "?search=GROC") == [b["id"]]
        # Blank search is ignored
        assert len(self.ids(client, "?search=%20%20")) == 3

    def test_search_treats_wildcards_literally(self, client):
        pct = create_task(client, title="100% done")
        create_task(client, title="1000 things")
        create_task(client, title="snake_case")
        create_task(client, title="snakeXcase")
        assert self.ids(client, "?search=100%25") == [pct["id"]]
        assert len(self.ids(client, "?search=snake_")) == 1

    def test_search_folds_non_ascii_case(self, client):
        elan = create_task(client, title="Élan vital")
        create_task(client, title="Plain")
        # "élan", percent-encoded
        assert self.ids(client, "?search=%C3%A9lan") == [elan["id"]]
        assert self.ids(client, "?search=VITAL") == [elan["id"]]

    def test_search_combined_with_status(self, client):
        a, b, c = self.seed(client)
        client.patch(f"/api/tasks/{a['id']}", json={"completed": True})
        assert self.ids(client, "?search=report&status=active") == [c["id"]]

    def test_sort_by_due_date_keeps_undated_last(self, client):
        a, b, c = self.seed(client)
        assert self.ids(client, "?sort=due_date&order=asc") == [c["id"], a["id"], b["id"]]
        assert self.ids(client, "?sort=due_date&order=desc") == [a["id"], c["id"], b["id"]]

    def test_sort_by_priority(self, client):
        a, b, c = self.seed(client)
        assert self.ids(client, "?sort=priority&order=desc") == [b["id"], c["id"], a["id"]]
        assert self.ids(client, "?sort=priority&order=asc") == [a["id"], c["id"], b["id"]]

    def test_unknown_sort_falls_back_to_created_at(self, client):
        a, b, c = self.seed(client)
        assert self.ids(client, "?sort=bogus") == [c["id"], b["id"], a["id"]]

    def test_invalid_order_param(self, client):
        res = client.get("/api/tasks?order=sideways")
        assert res.status_code == 400
        assert res.json() == {"error": "order must be 'asc' or 'desc'"}

    def test_invalid_status_param(self, client):
        res = client.get("/api/tasks?status=archived")
        assert res.status_code == 400
        assert "status" in res.json()["error"]


class TestBulkOperations:
    def test_complete_all_and_back(self, client):
        for i in range(3):
            create_task(client, title=f"Bulk {i}")

        res = client.post("/api/tasks/complete_all", json={"value": True})
        assert res.status_code == 200
        items = res.json()
        assert len(items) == 3
        assert all(t["completed"] is True for t in items)

        res = client.post("/api/tasks/complete_all", json={"value": False})
        assert all(t["completed"] is False for t in res.json())

    def test_complete_all_defaults_to_true(self, client):
        create_task(client, title="One")
        res = client.post("/api/tasks/complete_all")
        assert res.status_code == 200
        assert [t["completed"] for t in res.json()] == [True]

    def test_complete_all_on_empty_store(self, client):
        res = client.post("/api/tasks/complete_all", json={"value": True})
        assert res.status_code == 200
        assert res.json() == []

    def test_clear_completed(self, client):
        done = create_task(client, title="Done")
        todo = create_task(client, title="Todo")
        client.patch(f"/api/tasks/{done['id']}", json={"completed": True})

        res = client.delete("/api/tasks/clear_completed")
        assert res.status_code == 200
        assert res.json() == {"deleted": 1}
        assert [t["id"] for t in client.get("/api/tasks").json()] == [todo["id"]]

        # Nothing left to clear
        assert client.delete("/api/tasks/clear_completed").json() == {"deleted": 0}


class TestImportExport:
    def test_export_is_ordered_by_id_and_downloadable(self, client):
        first = create_task(client, title="First")
        second = create_task(client, title="Second", due_date="2099-02-02", priority=2)

        res = client.get("/api/tasks/export")
        assert res.status_code == 200
        assert res.headers["content-disposition"].startswith("attachment;")
        assert "tasks-export-" in res.headers["content-disposition"]
        assert [t["id"] for t in res.json()] == [first["id"], second["id"]]

    def test_export_then_import_round_trip(self, client):
        create_task(client, title="Alpha", due_date="2099-05-01", priority=0)
        b = create_task(client, title="Beta", priority=2)
        create_task(client, title="Gamma")
        client.patch(f"/api/tasks/{b['id']}", json={"completed": True})

        exported = client.get("/api/tasks/export").json()
        for task in exported:
            assert client.delete(f"/api/tasks/{task['id']}").status_code == 204
        assert client.get("/api/tasks").json() == []

        res = client.post("/api/tasks/import", json=exported)
        assert res.status_code == 200
        assert res.json() == {"imported": 3, "skipped": 0}

        def strip_ids(items):
            return sorted(
                ({k: v for k, v in t.items() if k != "id"} for t in items),
                key=lambda t: t["title"],
            )

        reimported = client.get("/api/tasks/export").json()
        assert strip_ids(reimported) == strip_ids(exported)
        # Fresh ids are assigned
        assert not {t["id"] for t in reimported} & {t["id"] for t in exported}

    def test_import_skips_malformed_entries(self, client):
        payload = [
            {"title": "Valid"},
            {"title": "   "},
            "not an object",
            42,
            {"title": "Bad priority", "priority": 7},
            {"title": "Bad date", "due_date": "not-a-date"},
            {"completed": True},
            {"title": "Edge of time", "created_at": "0001-01-01T00:00:00+01:00"},
        ]
        res = client.post("/api/tasks/import", json=payload)
        assert res.status_code == 200
        assert res.json() == {"imported": 1, "skipped": 7}
        assert [t["title"] for t in client.get("/api/tasks").json()] == ["Valid"]

    def test_import_preserves_created_at_and_fields(self, client):
        payload = [
            {
                "id": 999,
                "title": "Old task",
                "completed": True,
                "created_at": "2020-01-02T03:04:05",
                "due_date": "2020-02-01",
                "priority": 2,
            }
        ]
        assert client.post("/api/tasks/import", json=payload).json() == {"imported": 1, "skipped": 0}
        (task,) = client.get("/api/tasks").json()
        assert task["title"] == "Old task"
        assert task["completed"] is True
        assert task["due_date"] == "2020-02-01"
        assert task["priority"] == 2
        assert parse_ts(task["created_at"]) == parse_ts("2020-01-02T03:04:05+00:00")

    def test_import_empty_array(self, client):
        res = client.post("/api/tasks/import", json=[])
        assert res.status_code == 200
        assert res.json() == {"imported": 0, "skipped": 0}

    def test_import_rejects_non_array(self, client):
        res = client.post("/api/tasks/import", json={"title": "x"})
        assert res.status_code == 400
        assert "error" in res.json()


class TestValidationErrors:
    def test_create_rejects_blank_title(self, client):
        for title in ["", "   ", "\t\n"]:
            res = client.post("/api/tasks", json={"title": title})
            assert res.status_code == 400
            body = res.json()
            assert body["error"] == "title is required"
            assert isinstance(body["detail"], list)
        assert client.get("/api/tasks").json() == []

    def test_create_rejects_missing_title(self, client):
        res = client.post("/api/tasks", json={"priority": 1})
        assert res.status_code == 400
        assert "error" in res.json()

    def test_create_rejects_non_string_title(self, client):
        res = client.post("/api/tasks", json={"title": 12})
        assert res.status_code == 400
        assert res.json()["error"] == "title must be a string"

    def test_create_rejects_overlong_title(self, client):
        res = client.post("/api/tasks", json={"title": "x" * 201})
        assert res.status_code == 400

    def test_create_rejects_out_of_range_priority(self, client):
        res = client.post("/api/tasks", json={"title": "Prio", "priority": 3})
        assert res.status_code == 400

    def test_create_rejects_malformed_json(self, client):
        res = client.post(
            "/api/tasks",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )
        assert res.status_code == 400

    def test_patch_rejects_blank_title(self, client):
        task = create_task(client, title="Keep me")
        res = client.patch(f"/api/tasks/{task['id']}", json={"title": "  "})
        assert res.status_code == 400
        assert res.json()["error"] == "title is required"
        assert client.get(f"/api/tasks/{task['id']}").json()["title"] == "Keep me"

    def test_patch_rejects_bad_due_date(self, client):
        task = create_task(client, title="Due date bad")
        res = client.patch(f"/api/tasks/{task['id']}", json={"due_date": "not-a-date"})
        assert res.status_code == 400
        assert "due_date" in res.json()["error"]

    def test_non_integer_id(self, client):
        res = client.get("/api/tasks/abc")
        assert res.status_code == 400
