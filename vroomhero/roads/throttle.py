from vroomhero.roads.models import ThrottleState


def should_call_remote(state: ThrottleState, now_ms: int, min_interval_ms: int) -> bool:
    """Whether enough time has passed since the last remote call."""
    if state.last_call_ms is None:
        return True
    return now_ms - state.last_call_ms >= min_interval_ms


def record_call(state: ThrottleState, now_ms: int) -> None:
    state.last_call_ms = now_ms
