import inspect
import sys
from collections.abc import Awaitable, Callable, Sequence
from types import ModuleType

ExampleFn = Callable[[], Awaitable[None]] | Callable[[], None]


async def run_examples(mod: ModuleType, only: Sequence[str] = ()) -> None:
    """Run the example_* functions of a module in source order. `only` limits the run to the given names."""
    for name, fn in examples_of(mod):
        if only and name not in only and name.removeprefix("example_") not in only:
            continue
        print(f"\n# running: {name}")
        result = fn()
        if inspect.isawaitable(result):
            await result


def examples_of(mod: ModuleType) -> list[tuple[str, ExampleFn]]:
    found = [(name, fn) for name, fn in vars(mod).items() if name.startswith("example_") and callable(fn)]
    return sorted(found, key=lambda item: item[1].__code__.co_firstlineno)


def selected_from_argv() -> list[str]:
    return sys.argv[1:]
