import collections.abc
import dataclasses
from typing import Any, Mapping, Optional, Tuple, Union

# Sigils the engine accepts in front of a named parameter.
SIGILS = (":", "@", "$")
DEFAULT_SIGIL = ":"


@dataclasses.dataclass(frozen=True)
class Positional:
    values: Tuple[Any, ...]


@dataclasses.dataclass(frozen=True)
class Named:
    values: Mapping[str, Any]


ParameterSet = Union[Positional, Named]


def parameter_set(args: Tuple[Any, ...]) -> Optional[ParameterSet]:
    """Decide the binding style for the arguments of one call.

    ``stmt.run()`` supplies nothing, ``stmt.run({"id": 1})`` binds by name,
    ``stmt.run(1, "a")`` and ``stmt.run([1, "a"])`` bind by position.
    """
    if not args:
        return None
    if len(args) == 1:
        only = args[0]
        if isinstance(only, collections.abc.Mapping):
            return Named(dict(only))
        if isinstance(only, (list, tuple)):
            return Positional(tuple(only))
    return Positional(tuple(args))


def candidate_names(key: str):
    """Names to try for a mapping key: as-is if it carries a sigil, else with the default one."""
    if key[:1] in SIGILS:
        return (key,)
    return (DEFAULT_SIGIL + key,)
