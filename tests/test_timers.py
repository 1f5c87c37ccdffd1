from corridor.sim.timers import ResumeTimers


def test_fires_due_callbacks_in_due_order():
    timers = ResumeTimers()
    fired = []
    timers.schedule("b", 200, lambda: fired.append("b"))
    timers.schedule("a", 100, lambda: fired.append("a"))
    timers.schedule("c", 900, lambda: fired.append("c"))
    assert timers.fire_due(500) == 2
    assert fired == ["a", "b"]
    assert timers.pending() == ["c"]


def test_schedule_replaces_pending_timer_for_same_key():
    timers = ResumeTimers()
    fired = []
    first = timers.schedule("T1", 100, lambda: fired.append("old"))
    timers.schedule("T1", 300, lambda: fired.append("new"))
    assert first.cancelled
    assert timers.fire_due(200) == 0
    assert timers.fire_due(300) == 1
    assert fired == ["new"]


def test_callback_can_cancel_another_due_timer():
    timers = ResumeTimers()
    fired = []
    timers.schedule("a", 10, lambda: timers.cancel("b"))
    timers.schedule("b", 20, lambda: fired.append("b"))
    assert timers.fire_due(50) == 1
    assert fired == []


def test_cancel_all_clears_everything():
    timers = ResumeTimers()
    handles = [timers.schedule(k, 10, lambda: None) for k in ("x", "y")]
    timers.cancel_all()
    assert timers.pending() == []
    assert all(h.cancelled for h in handles)
    assert timers.fire_due(100) == 0
