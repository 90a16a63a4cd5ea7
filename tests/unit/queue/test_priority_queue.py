import threading

from openapi_queue.queue import PriorityQueue


def test_dequeue_respects_priority_then_fifo():
    pq = PriorityQueue()
    pq.enqueue("A", 2)
    pq.enqueue("B", 1)
    pq.enqueue("C", 2)
    pq.enqueue("D", 1)

    assert [pq.dequeue() for _ in range(4)] == ["B", "D", "A", "C"]


def test_lower_priority_enqueued_later_jumps_ahead():
    pq = PriorityQueue()
    for i in range(5):
        pq.enqueue(f"late-{i}", 5)
    pq.enqueue("urgent", 0)

    assert pq.dequeue() == "urgent"
    assert pq.dequeue() == "late-0"


def test_equal_priority_keeps_insertion_order():
    pq = PriorityQueue()
    items = [f"item-{i}" for i in range(50)]
    for item in items:
        pq.enqueue(item, 3)

    assert [pq.dequeue() for _ in items] == items


def test_empty_dequeue_returns_none_repeatedly():
    pq = PriorityQueue()
    assert pq.dequeue() is None
    assert pq.dequeue() is None

    pq.enqueue("x", 1)
    assert pq.dequeue() == "x"
    assert pq.dequeue() is None
    assert pq.dequeue() is None


def test_is_empty_and_len_track_occupancy():
    pq = PriorityQueue()
    assert pq.is_empty() is True
    assert len(pq) == 0

    pq.enqueue("a", 1)
    pq.enqueue("b", 1)
    assert pq.is_empty() is False
    assert len(pq) == 2

    pq.dequeue()
    pq.dequeue()
    assert pq.is_empty() is True


def test_peek_does_not_remove():
    pq = PriorityQueue()
    assert pq.peek() is None

    pq.enqueue("normal", 2)
    pq.enqueue("retry", 1)

    assert pq.peek() == ("retry", 1)
    assert len(pq) == 2
    assert pq.dequeue() == "retry"


def test_items_are_never_compared():
    # dicts are not orderable; equal priorities must not fall back to comparing items
    pq = PriorityQueue()
    pq.enqueue({"id": 1}, 1)
    pq.enqueue({"id": 2}, 1)

    assert pq.dequeue() == {"id": 1}
    assert pq.dequeue() == {"id": 2}


def test_clear_drops_everything():
    pq = PriorityQueue()
    pq.enqueue("a", 1)
    pq.enqueue("b", 2)

    assert pq.clear() == 2
    assert pq.is_empty() is True
    assert pq.clear() == 0


def test_concurrent_enqueue_dequeue():
    pq = PriorityQueue()
    errors = []
    seen = []
    seen_lock = threading.Lock()

    def producer(i):
        try:
            for j in range(100):
                pq.enqueue((i, j), j % 3)
        except Exception as e:
            errors.append(e)

    def consumer():
        try:
            for _ in range(200):
                item = pq.dequeue()
                if item is not None:
                    with seen_lock:
                        seen.append(item)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=producer, args=(i,)) for i in range(4)]
    threads += [threading.Thread(target=consumer) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    while not pq.is_empty():
        seen.append(pq.dequeue())

    assert errors == []
    assert len(seen) == 400
    assert len(set(seen)) == 400
