"""Member extraction, type references and structural relations."""

from __future__ import annotations

from frontend_ir.ir.models import RelationKind, TypeRefKind, Visibility
from tests._fixtures.project_builder import classifier_named, relations, tag_map

SHOP = {
    "src/domain.ts": """
        export interface Entity { id: string }
        export interface Audited extends Entity { createdAt: Date }
        export class Address { street: string = ''; }
        export class Tag {}
        export abstract class Base implements Entity {
          id = '';
          abstract describe(): string;
        }
        export class Customer extends Base implements Audited {
          static count = 0;
          readonly createdAt: Date = new Date();
          private address: Address;
          protected tags: Tag[] = [];
          #secret?: string;
          lookup: Map<string, Tag> = new Map();
          constructor(public readonly name: string, private age: number) { super(); }
          describe(): string { return Helper.format(this.name); }
          rename = (next: string): void => { this.address = new Address(); };
          static create(name: string): Customer { return new Customer(name, 1); }
        }
        export class Helper { static format(value: string): string { return value; } }
        export enum Status { Active = 'active', Closed = 'closed' }
        export enum Level { Low, High = 10 }
    """,
}


def test_class_members_and_modifiers(project_builder) -> None:
    project_builder.write(SHOP)

    customer = classifier_named(project_builder.extract(mode="ts").model, "Customer")

    attributes = {attribute.name: attribute for attribute in customer.attributes}
    assert attributes["count"].is_static is True
    assert attributes["createdAt"].is_final is True
    assert attributes["address"].visibility == Visibility.PRIVATE
    assert attributes["address"].type.kind == TypeRefKind.NAMED
    assert attributes["address"].type.name == "Address"
    assert attributes["tags"].visibility == Visibility.PROTECTED
    assert attributes["tags"].type.kind == TypeRefKind.ARRAY
    assert attributes["tags"].type.element_type.name == "Tag"
    assert attributes["#secret"].visibility == Visibility.PRIVATE
    assert attributes["lookup"].type.kind == TypeRefKind.GENERIC
    assert [arg.kind for arg in attributes["lookup"].type.type_args] == [TypeRefKind.PRIMITIVE, TypeRefKind.NAMED]
    # Parameter properties become attributes.
    assert attributes["name"].is_final is True
    assert attributes["age"].visibility == Visibility.PRIVATE

    operations = {operation.name: operation for operation in customer.operations}
    constructor = operations["constructor"]
    assert constructor.is_constructor is True
    assert constructor.return_type.name == "Customer"
    # Canonical output orders parameters by name.
    assert [p.name for p in constructor.parameters] == ["age", "name"]
    assert operations["create"].is_static is True
    assert operations["create"].return_type.name == "Customer"
    assert operations["rename"].return_type.kind == TypeRefKind.PRIMITIVE
    assert operations["describe"].return_type.name == "string"


def test_abstract_and_interface_operations(project_builder) -> None:
    project_builder.write(SHOP)

    model = project_builder.extract(mode="ts").model

    describe = next(op for op in classifier_named(model, "Base").operations if op.name == "describe")
    assert describe.is_abstract is True
    entity = classifier_named(model, "Entity")
    assert [attribute.name for attribute in entity.attributes] == ["id"]


def test_enum_members_are_static_final_literals(project_builder) -> None:
    project_builder.write(SHOP)

    model = project_builder.extract(mode="ts").model

    status = {a.name: a for a in classifier_named(model, "Status").attributes}
    level = {a.name: a for a in classifier_named(model, "Level").attributes}
    assert status["Active"].type.name == "string"
    assert level["Low"].type.name == "number"
    assert level["High"].is_static is True and level["High"].is_final is True


def test_heritage_relations(project_builder) -> None:
    project_builder.write(SHOP)

    model = project_builder.extract(mode="ts").model

    assert relations(model, RelationKind.INHERITANCE, "Customer", "Base")
    assert relations(model, RelationKind.IMPLEMENTATION, "Customer", "Audited")
    assert relations(model, RelationKind.IMPLEMENTATION, "Base", "Entity")
    assert relations(model, RelationKind.INHERITANCE, "Audited", "Entity")


def test_associations_only_for_direct_references(project_builder) -> None:
    project_builder.write(SHOP)

    model = project_builder.extract(mode="ts").model

    address = relations(model, RelationKind.ASSOCIATION, "Customer", "Address")
    assert len(address) == 1
    assert tag_map(address[0]) == {"member": "address"}
    tags = relations(model, RelationKind.ASSOCIATION, "Customer", "Tag")
    # `Tag[]` is direct, `Map<string, Tag>` is not; both collapse into one relation.
    assert {tag.value for tag in tags[0].tagged_values} == {"tags"}
    assert not relations(model, RelationKind.DEPENDENCY)


def test_include_deps_adds_dependencies_without_changing_other_relations(project_builder) -> None:
    project_builder.write(SHOP)

    plain = project_builder.extract(mode="ts").model
    with_deps = project_builder.extract(mode="ts", include_deps=True).model

    def structural(model):
        return sorted(
            (relation.id, tuple((t.key, t.value) for t in relation.tagged_values))
            for relation in model.relations
            if relation.kind != RelationKind.DEPENDENCY
        )

    assert structural(plain) == structural(with_deps)
    assert relations(with_deps, RelationKind.DEPENDENCY, "Customer", "Helper")
    usage = relations(with_deps, RelationKind.DEPENDENCY, "Customer", "Address")
    assert {tag.value for relation in usage for tag in relation.tagged_values if tag.key == "origin"} >= {"usage"}
    lookup = relations(with_deps, RelationKind.DEPENDENCY, "Customer", "Tag")
    assert lookup and tag_map(lookup[0])["origin"] == "typeRef"


def test_functions_expose_a_single_operation(project_builder) -> None:
    project_builder.write(
        {
            "fn.ts": """
                export class Item {}
                export function total(items: Item[], tax?: number): number { return 0; }
                export const pick = (item: Item) => item;
            """,
        }
    )

    model = project_builder.extract(mode="ts").model

    total = classifier_named(model, "total")
    assert [op.name for op in total.operations] == ["total"]
    params = {p.name: p for p in total.operations[0].parameters}
    assert params["items"].type.kind == TypeRefKind.ARRAY
    assert params["tax"].type.name == "number"
    assert classifier_named(model, "pick").operations[0].return_type.kind == TypeRefKind.UNKNOWN
    assert relations(model, RelationKind.ASSOCIATION, "total", "Item")


def test_type_alias_keeps_its_text(project_builder) -> None:
    project_builder.write({"t.ts": "export type Pair = [string,   number];\n"})

    model = project_builder.extract(mode="ts").model

    assert classifier_named(model, "Pair").get_tag("ts.typeAlias") == "[string, number]"
