"""Declaration pass: classifier kinds, naming, visibility and symbol binding."""

from __future__ import annotations

from frontend_ir.ir.models import ClassifierKind, RelationKind, Visibility
from tests._fixtures.project_builder import classifier_named, relations, tag_map


def test_declaration_kinds_and_qualified_names(project_builder) -> None:
    project_builder.write(
        {
            "src/models/user.ts": """
                export class User {}
                export abstract class Base {}
                export interface Named { name: string }
                export enum Color { Red, Green }
                export type Id = string;
                export function makeUser(): User { return new User(); }
                export const toId = (value: string): Id => value;
                const internal = function () { return 1; };
                const plainValue = 42;
            """,
        }
    )

    model = project_builder.extract(mode="ts").model

    user = classifier_named(model, "User")
    assert user.kind == ClassifierKind.CLASS
    assert user.qualified_name == "src.models.user.User"
    assert user.source.file == "src/models/user.ts"
    assert user.source.line == 1
    assert user.source.col == 1
    assert classifier_named(model, "Base").get_tag("ts.abstract") == "true"
    assert classifier_named(model, "Named").kind == ClassifierKind.INTERFACE
    assert classifier_named(model, "Color").kind == ClassifierKind.ENUM
    assert classifier_named(model, "Id").kind == ClassifierKind.TYPE_ALIAS
    assert classifier_named(model, "makeUser").kind == ClassifierKind.FUNCTION
    assert classifier_named(model, "toId").kind == ClassifierKind.FUNCTION
    assert classifier_named(model, "internal").visibility == Visibility.PACKAGE
    assert user.visibility == Visibility.PUBLIC
    assert not [c for c in model.classifiers if c.name == "plainValue"]


def test_classifier_package_matches_directory(project_builder) -> None:
    project_builder.write({"src/a/thing.ts": "export class Thing {}", "root.ts": "export class Top {}"})

    model = project_builder.extract(mode="ts").model

    packages = {package.id: package for package in model.packages}
    assert packages[classifier_named(model, "Thing").package_id].qualified_name == "src.a"
    assert packages[classifier_named(model, "Top").package_id].qualified_name == "(root)"
    assert classifier_named(model, "Top").qualified_name == "root.Top"


def test_locally_exported_names_are_public(project_builder) -> None:
    project_builder.write({"a.ts": "class Hidden {}\nclass Shown {}\nexport { Shown };\n"})

    model = project_builder.extract(mode="ts").model

    assert classifier_named(model, "Hidden").visibility == Visibility.PACKAGE
    assert classifier_named(model, "Shown").visibility == Visibility.PUBLIC


def test_namespace_members_get_scoped_names(project_builder) -> None:
    project_builder.write(
        {
            "geo.ts": """
                export namespace Geo {
                  export class Point {}
                  export class Line { start: Point; }
                }
            """,
        }
    )

    model = project_builder.extract(mode="ts").model

    point = classifier_named(model, "Point")
    assert point.qualified_name == "geo.Geo.Point"
    assert relations(model, RelationKind.ASSOCIATION, "Line", "Point")


def test_imports_bind_across_files_including_reexports(project_builder) -> None:
    project_builder.write(
        {
            "src/models/user.ts": "export class User {}",
            "src/models/index.ts": "export * from './user';",
            "src/services/store.ts": """
                import { User as Account } from '../models';
                import * as models from '../models/user';
                export class Store {
                  current: Account;
                  other: models.User;
                }
            """,
        }
    )

    model = project_builder.extract(mode="ts").model

    associations = relations(model, RelationKind.ASSOCIATION, "Store", "User")
    assert len(associations) == 1
    assert {tag.value for tag in associations[0].tagged_values if tag.key == "member"} == {"current", "other"}


def test_same_name_in_two_files_gives_two_classifiers(project_builder) -> None:
    project_builder.write({"a/model.ts": "export class Model {}", "b/model.ts": "export class Model {}"})

    model = project_builder.extract(mode="ts").model

    models = [c for c in model.classifiers if c.name == "Model"]
    assert len({c.id for c in models}) == 2
    assert {c.qualified_name for c in models} == {"a.model.Model", "b.model.Model"}


def test_declaration_files_are_not_declared(project_builder) -> None:
    project_builder.write({"types.d.ts": "declare class Ambient {}", "main.ts": "export class Main {}"})

    model = project_builder.extract(mode="ts").model

    assert [c.name for c in model.classifiers] == ["Main"]
    assert tag_map(classifier_named(model, "Main")) == {}
