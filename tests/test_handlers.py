"""Tests for duet.handlers: explicit handler declarations."""

import pytest

from duet.handlers import Handlers, collect_handlers, handler, handlers_from_source


class Base:
    @handler
    def handle_click(self) -> str:
        return f"click:{self.name}"

    @handler("submit")
    def _on_submit(self) -> str:
        return "base-submit"

    def handle_not_declared(self) -> str:
        return "ignored"

    def __init__(self, name: str = "base") -> None:
        self.name = name


class Child(Base):
    @handler("submit")
    def _child_submit(self) -> str:
        return "child-submit"


class TestCollect:
    def test_only_declared_methods(self) -> None:
        table = collect_handlers(Base())
        assert set(table) == {"handle_click", "submit"}

    def test_bound_to_instance(self) -> None:
        table = collect_handlers(Base("widget"))
        assert table["handle_click"]() == "click:widget"

    def test_subclass_declaration_wins(self) -> None:
        table = collect_handlers(Child())
        assert table["submit"]() == "child-submit"


class TestFromSource:
    def test_mapping_uses_prefix(self) -> None:
        target = Base("target")
        source = {
            "handle_extra": lambda self: f"extra:{self.name}",
            "other": lambda self: "nope",
            "handle_value": 42,
        }
        table = handlers_from_source(source, target, prefix="handle_")
        assert set(table) == {"handle_extra"}
        assert table["handle_extra"]() == "extra:target"

    def test_object_rebinds_declared_methods(self) -> None:
        target = Base("target")
        table = handlers_from_source(Child("source"), target, prefix="handle_")
        assert table["handle_click"]() == "click:target"
        assert table["submit"]() == "child-submit"


class TestHandlersMapping:
    def test_read_only_mapping(self) -> None:
        table = Handlers({"a": print})
        assert dict(table) == {"a": print}
        with pytest.raises(TypeError):
            table["b"] = print  # type: ignore[index]

    def test_merged_layers_on_top(self) -> None:
        first = Handlers({"a": len, "b": len})
        second = first.merged({"b": repr})
        assert second["b"] is repr
        assert first["b"] is len
