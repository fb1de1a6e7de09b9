"""Abstract environment — the symbol table built during one analysis pass."""

from __future__ import annotations

from dataclasses import dataclass, field

from .values import ClassTag, EvaluatedValue


@dataclass
class Environment:
    """Top-level bindings only; entering a body never creates a new frame."""

    variables: dict[str, EvaluatedValue] = field(default_factory=dict)
    # name → signature text, e.g. "add(a, b)"
    functions: dict[str, str] = field(default_factory=dict)
    classes: dict[str, ClassTag] = field(default_factory=dict)
    object_shapes: dict[str, dict[str, EvaluatedValue]] = field(default_factory=dict)
    fetch_counter: int = 0

    def bind(self, name: str, value: EvaluatedValue) -> None:
        self.variables[name] = value
        # A rebinding invalidates any shape recorded for the old value.
        self.object_shapes.pop(name, None)

    def record_shape(self, name: str, fields: dict[str, EvaluatedValue]) -> None:
        self.object_shapes[name] = dict(fields)

    def declare_function(self, name: str, signature: str) -> None:
        self.functions[name] = signature

    def declare_class(self, name: str) -> None:
        self.classes[name] = ClassTag(name=name)

    def fresh_fetch_id(self) -> str:
        task_id = f"fetch_{self.fetch_counter}"
        self.fetch_counter += 1
        return task_id
