import threading

from field_pipeline.roi import RoiTracker


def test_default_is_full_frame():
    assert RoiTracker().bounds == ((0.0, 0.0), (1.0, 1.0))


def test_null_points_reset_to_full_frame():
    roi = RoiTracker()
    roi.set_roi((0.2, 0.2), (0.6, 0.6))
    roi.set_roi(None, None)
    assert roi.bounds == ((0.0, 0.0), (1.0, 1.0))


def test_degenerate_points_reset():
    roi = RoiTracker()
    roi.set_roi((0.2, 0.2), (0.6, 0.6))
    roi.set_roi((0.0, 0.0), (0.0, 0.0))
    assert roi.bounds == ((0.0, 0.0), (1.0, 1.0))

    roi.set_roi((0.2, 0.2), (float("nan"), 0.5))
    assert roi.bounds == ((0.0, 0.0), (1.0, 1.0))

    roi.set_roi((0.2,), (0.5, 0.5))
    assert roi.bounds == ((0.0, 0.0), (1.0, 1.0))


def test_valid_bounds_are_kept_verbatim():
    roi = RoiTracker()
    roi.set_roi((0.8, 0.7), (0.1, 1.5))
    assert roi.bounds == ((0.8, 0.7), (0.1, 1.5))


def test_concurrent_updates_leave_a_consistent_pair():
    roi = RoiTracker()
    pairs = [((0.1, 0.1), (0.2, 0.2)), ((0.5, 0.5), (0.9, 0.9))]

    def writer(pair):
        for _ in range(500):
            roi.set_roi(*pair)

    threads = [threading.Thread(target=writer, args=(p,)) for p in pairs]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert roi.bounds in pairs


def test_reset_restores_full_frame():
    roi = RoiTracker()
    roi.set_roi((0.1, 0.2), (0.3, 0.4))
    roi.reset()
    assert roi.bounds == ((0.0, 0.0), (1.0, 1.0))
