def clamp(value: float, min_val: float, max_val: float) -> float:
    """Clamp value between min_val and max_val."""
    return max(min_val, min(max_val, value))


def vec_add(a: tuple, b: tuple) -> tuple:
    """Component-wise sum of two 2D vectors."""
    return (a[0] + b[0], a[1] + b[1])


def vec_sub(a: tuple, b: tuple) -> tuple:
    """Component-wise difference a - b of two 2D vectors."""
    return (a[0] - b[0], a[1] - b[1])
