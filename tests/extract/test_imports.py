"""File-level import graph built from import/require/dynamic import specifiers."""

from __future__ import annotations

from frontend_ir.ir.ids import module_id
from frontend_ir.ir.models import ClassifierKind, RelationKind
from frontend_ir.report import FindingKind
from tests._fixtures.project_builder import classifier_named, relations, tag_map

FILES = {
    "src/main.ts": """
        import { helper } from './util';
        import React from 'react';
        import './missing';
        export * from './util';
        export { helper };
        export async function load() {
          return import('./lazy');
        }
    """,
    "src/util.ts": "export function helper() { return 1; }\n",
    "src/lazy.ts": "export const value = 1;\n",
    "src/legacy.js": """
        const util = require('./util');
        const fs = require('fs');
        module.exports = util;
    """,
}


def _dependency_tags(model, source, target):
    return [tag_map(relation) for relation in relations(model, RelationKind.DEPENDENCY, source, target)]


def test_js_mode_builds_module_graph(project_builder) -> None:
    project_builder.write(FILES)

    model = project_builder.extract(mode="js").model

    main = classifier_named(model, "main.ts")
    assert main.kind == ClassifierKind.MODULE
    assert main.id == module_id("src/main.ts")
    assert main.has_stereotype("SourceFile")
    assert main.get_tag("source.file") == "src/main.ts"
    assert main.qualified_name == "src/main.ts"

    tags = _dependency_tags(model, "main.ts", "util.ts")
    # ``import`` and ``export ... from`` with the same specifier merge into one edge.
    assert tags == [{"origin": "import", "specifier": "./util"}]
    assert _dependency_tags(model, "main.ts", "lazy.ts") == [{"origin": "import", "specifier": "./lazy"}]
    assert _dependency_tags(model, "legacy.js", "util.ts") == [{"origin": "require", "specifier": "./util"}]


def test_unresolved_relative_imports_are_reported(project_builder) -> None:
    project_builder.write(FILES)

    report = project_builder.extract(mode="js").report

    unresolved = [finding for finding in report.findings if finding.kind == FindingKind.UNRESOLVED_IMPORT]
    assert [finding.tags["specifier"] for finding in unresolved] == ["./missing"]
    assert unresolved[0].location.file == "src/main.ts"
    assert unresolved[0].location.line == 3
    assert report.unresolved_count == 1


def test_import_graph_is_off_by_default_outside_js_mode(project_builder) -> None:
    project_builder.write(FILES)

    model = project_builder.extract(mode="ts").model

    assert not any(classifier.kind == ClassifierKind.MODULE for classifier in model.classifiers)
    assert not relations(model, RelationKind.DEPENDENCY)


def test_include_deps_enables_import_graph(project_builder) -> None:
    project_builder.write(FILES)

    model = project_builder.extract(mode="ts", include_deps=True).model

    assert relations(model, RelationKind.DEPENDENCY, "main.ts", "util.ts")
    # ts mode leaves plain JavaScript out when no tsconfig allows it.
    assert not any(classifier.name == "legacy.js" for classifier in model.classifiers)


def test_allow_js_in_tsconfig_keeps_javascript_in_ts_mode(project_builder) -> None:
    project_builder.write(FILES)
    project_builder.write_json("tsconfig.json", {"compilerOptions": {"allowJs": True}})

    model = project_builder.extract(mode="ts", include_deps=True).model

    assert relations(model, RelationKind.DEPENDENCY, "legacy.js", "util.ts")
