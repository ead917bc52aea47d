from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from mirrorpack.core.method_tree import (
    MethodPathError,
    MirroredApi,
    build_method_tree,
    normalize_method_paths,
    resolve_method,
)


def _passthrough(path: str, target: Any, parent: Any) -> Any:
    return target


def test_method_paths_keep_declaration_order() -> None:
    assert normalize_method_paths(["storage.set", " event.addListener ", "ping"]) == (
        "storage.set",
        "event.addListener",
        "ping",
    )


@pytest.mark.parametrize(
    ("methods", "message"),
    [
        ("storage.set", "not a single string"),
        (["storage..set"], "Invalid method path"),
        (["1storage.set"], "Invalid method path"),
        ([""], "Invalid method path"),
        ([42], "must be a string"),
        (["storage.set", "storage.set"], "Duplicate"),
        (["storage", "storage.set"], "also a namespace"),
    ],
)
def test_invalid_method_paths_are_rejected(methods: Any, message: str) -> None:
    with pytest.raises(MethodPathError, match=message):
        normalize_method_paths(methods)


def test_tree_exposes_only_listed_methods(live_api: SimpleNamespace) -> None:
    tree = build_method_tree(["storage.set", "event.addListener"], _passthrough, live_api)

    assert isinstance(tree, MirroredApi)
    assert isinstance(tree.storage, MirroredApi)
    assert tree.storage.set("k", 1) is True
    assert live_api.storage.data == {"k": 1}
    assert not hasattr(tree.storage, "get")
    assert not hasattr(tree, "device")
    assert repr(tree) == "MirroredApi(event, storage)"


def test_methods_resolve_through_mappings_and_attributes() -> None:
    api = {"net": SimpleNamespace(send=lambda payload: len(payload))}

    target, parent = resolve_method(api, "net.send")

    assert target(b"abc") == 3
    assert parent is api["net"]


def test_wrapper_receives_path_target_and_owner(live_api: SimpleNamespace) -> None:
    seen: list[tuple[str, Any, Any]] = []

    def wrap(path: str, target: Any, parent: Any) -> Any:
        seen.append((path, target, parent))
        return target

    build_method_tree(["device.write"], wrap, live_api)

    assert seen == [("device.write", live_api.device.write, live_api.device)]


def test_unresolvable_paths_fail_at_construction(live_api: SimpleNamespace) -> None:
    with pytest.raises(MethodPathError, match="no member 'storage.delete'"):
        build_method_tree(["storage.delete"], _passthrough, live_api)
    with pytest.raises(MethodPathError, match="not callable"):
        build_method_tree(["storage.data"], _passthrough, live_api)


def test_tree_without_api_hands_none_to_the_wrapper() -> None:
    tree = build_method_tree(["a.b.c"], lambda path, target, parent: (path, target, parent))

    assert tree.a.b.c == ("a.b.c", None, None)
