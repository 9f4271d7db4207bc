"""Package hierarchy derived from source directories."""

from __future__ import annotations

from frontend_ir.extract.packages import ROOT_PACKAGE_NAME, build_package_map, directory_of
from frontend_ir.ir.ids import package_id


def test_package_map_includes_ancestors_and_root() -> None:
    packages = build_package_map(["src/app/models/user.ts", "main.ts"])

    assert set(packages) == {"", "src", "src/app", "src/app/models"}
    models = packages["src/app/models"]
    assert models.name == "models"
    assert models.qualified_name == "src.app.models"
    assert models.parent_id == packages["src/app"].id
    assert packages["src"].parent_id == packages[""].id
    assert packages[""].name == ROOT_PACKAGE_NAME
    assert packages[""].parent_id is None


def test_package_ids_are_stable_across_input_order() -> None:
    forward = build_package_map(["a/x.ts", "b/y.ts"])
    backward = build_package_map(["b/y.ts", "a/x.ts"])
    assert {key: package.id for key, package in forward.items()} == {
        key: package.id for key, package in backward.items()
    }
    assert forward["a"].id == package_id("a")


def test_directory_of_normalises_windows_separators() -> None:
    assert directory_of("src\\app\\main.ts") == "src/app"
    assert directory_of("main.ts") == ""
