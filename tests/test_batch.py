from vegatools.batch import BatchOrders


def test_new_batch_is_empty():
    batch = BatchOrders()
    assert batch.message_count() == 0
    assert batch.cancels == [] and batch.amends == [] and batch.orders == []


def test_message_count_sums_all_kinds():
    batch = BatchOrders()
    batch.cancels.append({"marketId": "m1"})
    batch.amends.append({"orderId": "o1"})
    batch.orders.append({"marketId": "m1", "size": 1})
    assert batch.message_count() == 3


def test_clear_drops_everything():
    batch = BatchOrders()
    batch.cancels.append({"marketId": "m1"})
    batch.orders.extend([{"size": 1}, {"size": 2}])
    batch.clear()
    assert batch.message_count() == 0
    assert batch.orders == []


def test_batches_do_not_share_lists():
    first = BatchOrders()
    second = BatchOrders()
    first.orders.append({"size": 1})
    assert second.message_count() == 0
    assert first.message_count() == len(first.orders)