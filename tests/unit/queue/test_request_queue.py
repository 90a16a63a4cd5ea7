from openapi_queue.config import QueueSettings
from openapi_queue.queue import Priority, QueueItem, RequestQueue


def _item(name, retries=None):
    return QueueItem(
        endpoint=f"/uapi/{name}",
        parameters={"fid_input_iscd": name},
        request_kind="FHKST01010100",
        on_complete=lambda data: None,
        retries_remaining=retries,
    )


def test_enqueue_defaults_retry_budget_to_five():
    queue = RequestQueue()
    item = _item("005930")
    queue.enqueue(item)

    dequeued = queue.dequeue()
    assert dequeued is item
    assert dequeued.retries_remaining == 5


def test_enqueue_keeps_explicit_retry_budget():
    queue = RequestQueue()
    queue.enqueue(_item("a", retries=0))
    queue.enqueue(_item("b", retries=2))

    assert queue.dequeue().retries_remaining == 0
    assert queue.dequeue().retries_remaining == 2


def test_default_priority_is_two():
    queue = RequestQueue()
    queue.enqueue(_item("fresh"))

    _, priority = queue.peek()
    assert priority == Priority.DEFAULT == 2


def test_falsy_priority_falls_back_to_default():
    queue = RequestQueue()
    queue.enqueue(_item("zero"), 0)
    queue.enqueue(_item("retry"), Priority.RETRY)

    first, priority = queue.peek()
    assert first.endpoint == "/uapi/retry"
    assert priority == 1
    queue.dequeue()
    assert queue.peek()[1] == 2


def test_retry_priority_served_before_fresh_items():
    queue = RequestQueue()
    queue.enqueue(_item("fresh-1"))
    queue.enqueue(_item("fresh-2"))
    queue.enqueue(_item("retried"), Priority.RETRY)

    order = [queue.dequeue().endpoint for _ in range(3)]
    assert order == ["/uapi/retried", "/uapi/fresh-1", "/uapi/fresh-2"]


def test_defaults_come_from_settings():
    queue = RequestQueue(QueueSettings(default_retries=2, default_priority=7))
    queue.enqueue(_item("x"))

    item, priority = queue.peek()
    assert item.retries_remaining == 2
    assert priority == 7


def test_empty_queue_passthrough():
    queue = RequestQueue()
    assert queue.is_empty() is True
    assert queue.dequeue() is None
    assert queue.dequeue() is None
    assert queue.depth == 0

    queue.enqueue(_item("x"))
    assert queue.is_empty() is False
    assert len(queue) == 1
    assert queue.clear() == 1
    assert queue.is_empty() is True


def test_items_get_distinct_ids():
    a, b = _item("a"), _item("b")
    assert a.item_id != b.item_id
    assert a.item_id.startswith("req-")
