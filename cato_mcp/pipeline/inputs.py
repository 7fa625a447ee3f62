"""Input policies applied to the effective arguments before the GraphQL call.

An InputPolicy is an ordered list of small steps, each taking the argument
dict and returning a new one. Tools compose them declaratively in their
descriptor under ``input_policy``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from ..errors import MissingRequiredInputError

Arguments = dict[str, Any]
InputStep = Callable[[Arguments], Arguments]

DEFAULT_COALESCE_FIELDS = ("siteIDs", "userIDs", "annotationTypes")
DEFAULT_LOOKUP_LIMIT = 1000


@dataclass(frozen=True)
class RequiredListGuard:
    """Reject the call when a list argument is absent or empty."""

    field: str
    message: str

    def __call__(self, args: Arguments) -> Arguments:
        value = args.get(self.field)
        if not isinstance(value, list) or not value:
            raise MissingRequiredInputError(self.message)
        return args


@dataclass(frozen=True)
class FlagForcing:
    """Set flags unconditionally, whatever the caller sent."""

    flags: dict[str, Any]

    def __call__(self, args: Arguments) -> Arguments:
        return {**args, **self.flags}


@dataclass(frozen=True)
class NullCoalesce:
    """Send absent filter arguments as an explicit null; an empty list stays empty."""

    fields: tuple[str, ...] = DEFAULT_COALESCE_FIELDS

    def __call__(self, args: Arguments) -> Arguments:
        result = dict(args)
        for name in self.fields:
            if result.get(name) is None:
                result[name] = None
        return result


@dataclass(frozen=True)
class LimitCap:
    """Default a page-size argument to its maximum and never exceed it."""

    field: str = "limit"
    maximum: int = DEFAULT_LOOKUP_LIMIT

    def __call__(self, args: Arguments) -> Arguments:
        value = args.get(self.field)
        if value is None or (isinstance(value, (int, float)) and value > self.maximum):
            return {**args, self.field: self.maximum}
        return args


@dataclass(frozen=True)
class UserInclusionGate:
    """Only ask for per-user data when both the flag and a user filter are set."""

    flag: str = "includeUsers"
    ids_field: str = "userIDs"

    def __call__(self, args: Arguments) -> Arguments:
        if not args.get(self.flag) or args.get(self.ids_field) is None:
            return {**args, self.flag: False, self.ids_field: None}
        return args


@dataclass(frozen=True)
class ConsumerTypeSwitch:
    """Derive the withUsers directive flag from consumerType."""

    type_field: str = "consumerType"
    flag: str = "withUsers"
    ids_field: str = "userIDs"

    def __call__(self, args: Arguments) -> Arguments:
        with_users = args.get(self.type_field) == "users"
        result = {**args, self.flag: with_users}
        if not with_users:
            result[self.ids_field] = None
        return result


@dataclass
class InputPolicy:
    """Ordered composition of input steps; identity when empty."""

    steps: list[InputStep] = field(default_factory=list)

    def apply(self, args: Arguments) -> Arguments:
        for step in self.steps:
            args = step(args)
        return args

    def __len__(self) -> int:
        return len(self.steps)


def _require_list(options: dict[str, Any]) -> InputStep:
    return RequiredListGuard(field=options["field"], message=options["message"])


def _force_flags(options: dict[str, Any]) -> InputStep:
    return FlagForcing(flags=dict(options["flags"]))


def _null_coalesce(options: dict[str, Any]) -> InputStep:
    return NullCoalesce(fields=tuple(options.get("fields", DEFAULT_COALESCE_FIELDS)))


def _cap_limit(options: dict[str, Any]) -> InputStep:
    return LimitCap(
        field=options.get("field", "limit"),
        maximum=int(options.get("maximum", DEFAULT_LOOKUP_LIMIT)),
    )


def _gate_users(options: dict[str, Any]) -> InputStep:
    return UserInclusionGate(**options)


def _consumer_switch(options: dict[str, Any]) -> InputStep:
    return ConsumerTypeSwitch(**options)


INPUT_PRIMITIVES: dict[str, Callable[[dict[str, Any]], InputStep]] = {
    "require_list": _require_list,
    "force_flags": _force_flags,
    "null_coalesce": _null_coalesce,
    "cap_limit": _cap_limit,
    "gate_users": _gate_users,
    "consumer_switch": _consumer_switch,
}


def build_input_policy(specs: Iterable[Any]) -> InputPolicy:
    """Compile descriptor policy specs into an InputPolicy.

    Raises:
        KeyError: on an unknown primitive name or a missing required option
    """
    steps: list[InputStep] = []
    for spec in specs:
        factory = INPUT_PRIMITIVES.get(spec.name)
        if factory is None:
            raise KeyError(f"unknown input policy '{spec.name}'")
        steps.append(factory(dict(spec.options)))
    return InputPolicy(steps=steps)
