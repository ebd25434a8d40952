from __future__ import annotations

from datetime import datetime, timezone

import pytest
from bson import ObjectId

from errors import InvalidId, NotFound, StoreError, ValidationError
from repositories import CommentRepository, TaskRepository, utc_now

from .conftest import StepClock
from .fakes import BrokenCollection, FakeCollection


def task_fields(**overrides) -> dict:
    fields = {
        "title": "Write report",
        "description": "Quarterly numbers",
        "status": "pending",
        "assignedTo": "bob",
        "dueDate": datetime(2024, 2, 1, tzinfo=timezone.utc),
        "priority": "high",
        "tags": ["work"],
    }
    fields.update(overrides)
    return fields


@pytest.fixture()
def tasks_collection() -> FakeCollection:
    return FakeCollection("Tasks")


@pytest.fixture()
def tasks(tasks_collection: FakeCollection) -> TaskRepository:
    return TaskRepository(tasks_collection, clock=StepClock())


def test_create_then_get_returns_submitted_fields(tasks: TaskRepository) -> None:
    task_id = tasks.create(task_fields(), created_by="u1")

    doc = tasks.get(task_id)
    for key, value in task_fields().items():
        assert doc[key] == value
    assert doc["createdBy"] == "u1"
    assert doc["comments"] == []
    assert doc["createdAt"] == doc["updatedAt"]


def test_create_keeps_explicit_created_by(tasks: TaskRepository) -> None:
    task_id = tasks.create(task_fields(createdBy="carol"), created_by="u1")
    assert tasks.get(task_id)["createdBy"] == "carol"


@pytest.mark.parametrize("missing", ["title", "description", "status", "assignedTo", "dueDate", "priority"])
def test_create_requires_every_field(tasks: TaskRepository, tasks_collection: FakeCollection, missing: str) -> None:
    fields = task_fields()
    del fields[missing]

    with pytest.raises(ValidationError, match="All fields are required"):
        tasks.create(fields, created_by="u1")
    assert tasks_collection.docs == []


def test_create_treats_empty_string_as_missing(tasks: TaskRepository) -> None:
    with pytest.raises(ValidationError):
        tasks.create(task_fields(title=""), created_by="u1")


def test_create_rejects_unknown_status(tasks: TaskRepository) -> None:
    with pytest.raises(ValidationError):
        tasks.create(task_fields(status="archived"), created_by="u1")


def test_list_keeps_insertion_order(tasks: TaskRepository) -> None:
    first = tasks.create(task_fields(title="one"), created_by="u1")
    second = tasks.create(task_fields(title="two"), created_by="u1")

    assert [str(d["_id"]) for d in tasks.list()] == [first, second]


def test_update_refreshes_updated_at_and_keeps_created_at(tasks: TaskRepository) -> None:
    task_id = tasks.create(task_fields(), created_by="u1")
    before = tasks.get(task_id)

    tasks.update(task_id, task_fields(status="completed", title="Write final report"))

    after = tasks.get(task_id)
    assert after["status"] == "completed"
    assert after["title"] == "Write final report"
    assert after["createdAt"] == before["createdAt"]
    assert after["updatedAt"] > before["updatedAt"]


def test_update_leaves_tags_alone_when_not_sent(tasks: TaskRepository) -> None:
    task_id = tasks.create(task_fields(tags=["a", "b"]), created_by="u1")
    fields = task_fields()
    del fields["tags"]

    tasks.update(task_id, fields)

    assert tasks.get(task_id)["tags"] == ["a", "b"]


def test_update_missing_id_is_not_found_and_writes_nothing(
    tasks: TaskRepository, tasks_collection: FakeCollection
) -> None:
    task_id = tasks.create(task_fields(), created_by="u1")
    snapshot = tasks.get(task_id)

    with pytest.raises(NotFound, match="Task not found"):
        tasks.update(str(ObjectId()), task_fields(title="changed"))

    assert tasks.get(task_id) == snapshot
    assert len(tasks_collection.docs) == 1


def test_update_requires_full_field_set(tasks: TaskRepository) -> None:
    task_id = tasks.create(task_fields(), created_by="u1")

    with pytest.raises(ValidationError):
        tasks.update(task_id, {"title": "only the title"})


def test_second_delete_is_not_found(tasks: TaskRepository) -> None:
    task_id = tasks.create(task_fields(), created_by="u1")

    tasks.delete(task_id)
    with pytest.raises(NotFound):
        tasks.delete(task_id)
    with pytest.raises(NotFound):
        tasks.get(task_id)


@pytest.mark.parametrize("bad_id", ["not-an-id", "", "123", "zzzzzzzzzzzzzzzzzzzzzzzz"])
def test_malformed_id_fails_before_store_access(
    tasks: TaskRepository, tasks_collection: FakeCollection, bad_id: str
) -> None:
    for op in (tasks.get, tasks.delete, lambda i: tasks.update(i, task_fields())):
        with pytest.raises(InvalidId, match="Invalid task ID format"):
            op(bad_id)
    assert tasks_collection.calls == []


def test_driver_failure_becomes_store_error() -> None:
    tasks = TaskRepository(BrokenCollection("Tasks"))

    with pytest.raises(StoreError) as info:
        tasks.list()
    assert info.value.message == "Failed to retrieve tasks"
    assert "connection refused" in info.value.detail


def test_comment_accepts_unknown_task_id() -> None:
    comments = CommentRepository(FakeCollection("Comments"), clock=StepClock())

    comment_id = comments.create({"taskId": "whatever", "content": "looks good"})

    doc = comments.get(comment_id)
    assert doc["taskId"] == "whatever"
    assert doc["content"] == "looks good"
    assert doc["createdAt"] == doc["updatedAt"]


def test_comment_update_and_missing_content() -> None:
    comments = CommentRepository(FakeCollection("Comments"), clock=StepClock())
    comment_id = comments.create({"taskId": "t1", "content": "first"})

    comments.update(comment_id, {"taskId": "t1", "content": "edited"})
    assert comments.get(comment_id)["content"] == "edited"

    with pytest.raises(ValidationError, match="All fields are required"):
        comments.update(comment_id, {"taskId": "t1"})
    with pytest.raises(InvalidId, match="Invalid comment ID format"):
        comments.get("nope")
    with pytest.raises(NotFound, match="Comment not found"):
        comments.delete(str(ObjectId()))


def test_utc_now_has_millisecond_precision() -> None:
    now = utc_now()
    assert now.tzinfo is not None
    assert now.microsecond % 1000 == 0


def test_update_is_strictly_later_with_real_clock() -> None:
    tasks = TaskRepository(FakeCollection("Tasks"), clock=utc_now)

    for _ in range(200):
        task_id = tasks.create(task_fields(), created_by="u1")
        tasks.update(task_id, task_fields(status="completed"))
        doc = tasks.get(task_id)
        assert doc["updatedAt"] > doc["createdAt"]


def test_repeated_updates_keep_advancing() -> None:
    frozen = datetime(2024, 1, 1, tzinfo=timezone.utc)
    tasks = TaskRepository(FakeCollection("Tasks"), clock=lambda: frozen)
    task_id = tasks.create(task_fields(), created_by="u1")

    stamps = []
    for _ in range(3):
        tasks.update(task_id, task_fields())
        stamps.append(tasks.get(task_id)["updatedAt"])

    assert stamps == sorted(set(stamps))
    assert stamps[0] > frozen
    assert tasks.get(task_id)["createdAt"] == frozen


def test_update_stores_dollar_values_literally(tasks: TaskRepository) -> None:
    task_id = tasks.create(task_fields(), created_by="u1")

    tasks.update(task_id, task_fields(title="$updatedAt", tags=["$createdAt"]))

    doc = tasks.get(task_id)
    assert doc["title"] == "$updatedAt"
    assert doc["tags"] == ["$createdAt"]
