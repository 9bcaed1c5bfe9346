import os
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from floe.agent.config import APPLICATION_CLASSPATH, CLASSPATH_VARIABLE, PWD_REFERENCE


def append_variable(
    env: Mapping[str, str], name: str, value: str, separator: str = os.pathsep
) -> Dict[str, str]:
    """
    Return a copy of ``env`` with ``value`` appended to ``name``.

    Repeated appends of the same value are kept, not de-duplicated.
    """
    updated = dict(env)
    current = updated.get(name)
    if current is None:
        updated[name] = value
    else:
        updated[name] = current + separator + value
    return updated


def compose_environment(
    base: Optional[Mapping[str, str]],
    appends: Iterable[Tuple[str, str]],
    separator: str = os.pathsep,
) -> Mapping[str, str]:
    """Fold ``appends`` in order over ``base`` into a read-only mapping."""
    env: Dict[str, str] = dict(base or {})
    for name, value in appends:
        env = append_variable(env, name, value, separator)
    return MappingProxyType(env)


def classpath_appends(classpath: Iterable[str]) -> List[Tuple[str, str]]:
    # Working-directory wildcard always leads
    appends = [(CLASSPATH_VARIABLE, PWD_REFERENCE + "/*")]
    for entry in classpath:
        appends.append((CLASSPATH_VARIABLE, entry.strip()))
    return appends


def classpath_environment(
    classpath: Iterable[str] = APPLICATION_CLASSPATH,
    base: Optional[Mapping[str, str]] = None,
    separator: str = os.pathsep,
) -> Mapping[str, str]:
    return compose_environment(base, classpath_appends(classpath), separator)
