"""Actions and the Shipment catalogue.

ARCHITECTURE
────────────
::

    Action (subclass per unit of work)
      ├── name          → "land-release-action" for ``LandReleaseAction``
      ├── description   → shown in the manual
      └── run(context, args) → result (sync or coroutine)

    Shipment([ActionA, ActionB, ...])
      ├── .get(name)      → Action class | ActionNotFoundError
      ├── .names()        → declared action names
      └── .manual()       → {"actions": {name: {"description": ...}}}

Example::

    class LandAction(Action):
        description = "Land the current release"

        def run(self, context, args):
            context.report("progress", {"percent": 100})
            return "landed"

    shipment = Shipment([LandAction])
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from shipment.core.errors import ActionNotFoundError
from shipment.execution.context import ExecutionContext

_CAMEL = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def action_name(cls: type) -> str:
    """Derive a kebab-case action name from a class name.

    >>> action_name(type("SomeSubAction", (), {}))
    'some-sub-action'
    """
    return _CAMEL.sub("-", cls.__name__).lower()


class Action:
    """Base class for a unit of work the driver can invoke."""

    name: str = ""
    description: str = ""

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "name" not in cls.__dict__ or not cls.__dict__["name"]:
            cls.name = action_name(cls)

    def run(self, context: ExecutionContext, args: Mapping[str, Any]) -> Any:
        raise NotImplementedError(f"Action {self.name!r} does not implement run()")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class Shipment:
    """An ordered catalogue of actions."""

    def __init__(self, actions: Iterable[type[Action]] = ()) -> None:
        self._actions: dict[str, type[Action]] = {}
        for action in actions:
            self.add(action)

    def add(self, action: type[Action]) -> type[Action]:
        """Register an action class. Usable as a decorator."""
        if not (isinstance(action, type) and issubclass(action, Action)):
            raise TypeError(f"Expected an Action subclass, got {action!r}")
        self._actions[action.name] = action
        return action

    def get(self, name: str) -> type[Action]:
        """Get the action class registered under ``name``.

        Raises:
            ActionNotFoundError: If no such action exists
        """
        try:
            return self._actions[name]
        except KeyError:
            raise ActionNotFoundError(name, self.names()) from None

    def has(self, name: str) -> bool:
        return name in self._actions

    def names(self) -> list[str]:
        return list(self._actions)

    def manual(self) -> dict[str, Any]:
        """Describe the available actions."""
        return {
            "actions": {
                name: {"description": action.description}
                for name, action in self._actions.items()
            }
        }

    def __iter__(self) -> Iterator[type[Action]]:
        return iter(self._actions.values())

    def __len__(self) -> int:
        return len(self._actions)
