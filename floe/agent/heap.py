from floe.agent.config import HEAP_CUTOFF_RATIO, HEAP_LIMIT_CAP


def compute_heap_limit(
    memory_budget_mb: int,
    cutoff_ratio: float = HEAP_CUTOFF_RATIO,
    cap_mb: int = HEAP_LIMIT_CAP,
) -> int:
    """
    Calculate the heap size for the JVM started in a container.

    A JVM allocates more than just its heap, and the resource manager kills
    containers that exceed their memory budget. So only ``cutoff_ratio`` of
    the budget goes to the heap, unless the remainder would be more than
    ``cap_mb``, in which case exactly ``cap_mb`` is kept back.

    ``memory_budget_mb`` must be positive; it is not validated here.
    """
    heap_limit = int(memory_budget_mb * cutoff_ratio)
    if memory_budget_mb - heap_limit > cap_mb:
        heap_limit = memory_budget_mb - cap_mb
    return heap_limit
