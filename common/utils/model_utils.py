from collections.abc import Callable

from cuid2 import cuid_wrapper


def generate_unique_id() -> str:
    cuid_generator: Callable[[], str] = cuid_wrapper()
    return cuid_generator()
