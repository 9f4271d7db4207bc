"""Angular decorators: classification, tags, DI and module wiring."""

from __future__ import annotations

from frontend_ir.ir.models import ClassifierKind, RelationKind
from frontend_ir.report import FindingKind
from tests._fixtures.project_builder import classifier_named, relations, tag_map

APP = {
    "package.json": '{"dependencies": {"@angular/core": "^17.0.0"}}',
    "src/app/api.service.ts": """
        import { Injectable } from '@angular/core';
        import { HttpClient } from '@angular/common/http';
        @Injectable({ providedIn: 'root' })
        export class ApiService {
          constructor(private http: HttpClient) {}
        }
    """,
    "src/app/logger.ts": """
        import { Injectable, InjectionToken } from '@angular/core';
        export const API_URL = new InjectionToken<string>('api');
        @Injectable()
        export class Logger {}
        @Injectable()
        export class ConsoleLogger extends Logger {}
    """,
    "src/app/user-list.component.ts": """
        import { Component, Inject, inject } from '@angular/core';
        import { ApiService } from './api.service';
        import { Logger, ConsoleLogger, API_URL } from './logger';
        import { Ghost } from './ghost';
        @Component({
          selector: 'app-user-list',
          templateUrl: './user-list.component.html',
          providers: [{ provide: Logger, useClass: ConsoleLogger }, { provide: API_URL, useValue: '/api' }],
        })
        export class UserListComponent {
          private readonly log = inject(Logger);
          constructor(private api: ApiService, @Inject(API_URL) private url: string, private ghost: Ghost) {}
        }
    """,
    "src/app/badge.pipe.ts": """
        import { Pipe } from '@angular/core';
        @Pipe({ name: 'badge' })
        export class BadgePipe {}
    """,
    "src/app/highlight.directive.ts": """
        import { Directive } from '@angular/core';
        @Directive({ selector: '[appHighlight]' })
        export class HighlightDirective {}
    """,
    "src/app/standalone.component.ts": """
        import { Component } from '@angular/core';
        import { CommonModule } from '@angular/common';
        import { BadgePipe } from './badge.pipe';
        @Component({ selector: 'app-standalone', standalone: true, imports: [CommonModule, BadgePipe] })
        export class StandaloneComponent {}
    """,
    "src/app/app.module.ts": """
        import { NgModule } from '@angular/core';
        import { BrowserModule } from '@angular/platform-browser';
        import { UserListComponent } from './user-list.component';
        import { HighlightDirective } from './highlight.directive';
        import { ApiService } from './api.service';
        @NgModule({
          imports: [BrowserModule.forRoot()],
          declarations: [UserListComponent, HighlightDirective, NotDeclaredAnywhere],
          providers: [ApiService],
          bootstrap: [UserListComponent],
        })
        export class AppModule {}
    """,
}


def test_decorated_classes_are_classified(project_builder) -> None:
    project_builder.write(APP)

    model = project_builder.extract(mode="angular").model

    component = classifier_named(model, "UserListComponent")
    assert component.kind == ClassifierKind.COMPONENT
    assert component.has_stereotype("AngularComponent")
    assert tag_map(component)["angular.selector"] == "app-user-list"
    assert tag_map(component)["angular.templateUrl"] == "./user-list.component.html"
    assert tag_map(component)["angular.decorator"] == "Component"
    assert tag_map(component)["framework"] == "angular"

    service = classifier_named(model, "ApiService")
    assert service.kind == ClassifierKind.SERVICE
    assert service.get_tag("angular.providedIn") == "root"
    assert classifier_named(model, "AppModule").kind == ClassifierKind.MODULE
    assert classifier_named(model, "AppModule").has_stereotype("AngularNgModule")
    pipe = classifier_named(model, "BadgePipe")
    assert pipe.kind == ClassifierKind.CLASS and pipe.get_tag("angular.pipeName") == "badge"
    assert classifier_named(model, "HighlightDirective").has_stereotype("AngularDirective")


def test_constructor_and_inject_function_di(project_builder) -> None:
    project_builder.write(APP)

    model = project_builder.extract(mode="angular").model

    constructor = relations(model, RelationKind.DI, "UserListComponent", "ApiService")
    assert constructor and tag_map(constructor[0]) == {"origin": "constructor", "param": "api"}
    inject_fn = relations(model, RelationKind.DI, "UserListComponent", "Logger")
    assert {t.value for t in inject_fn[0].tagged_values if t.key == "origin"} >= {"injectFn"}
    # HttpClient comes from a package: no edge and no finding.
    assert not relations(model, RelationKind.DI, "ApiService")


def test_providers_with_use_class(project_builder) -> None:
    project_builder.write(APP)

    model = project_builder.extract(mode="angular").model

    provider = relations(model, RelationKind.DI, "UserListComponent", "ConsoleLogger")
    tags = tag_map(provider[0])
    assert tags["origin"] == "provider"
    assert tags["providerKind"] == "useClass"
    assert tags["provide"] == "Logger"
    assert tags["scope"] == "component"
    module_provider = relations(model, RelationKind.DI, "AppModule", "ApiService")
    assert tag_map(module_provider[0])["scope"] == "ngmodule"


def test_ngmodule_and_standalone_dependencies(project_builder) -> None:
    project_builder.write(APP)

    model = project_builder.extract(mode="angular").model

    roles = {
        tag.value
        for relation in relations(model, RelationKind.DEPENDENCY, "AppModule", "UserListComponent")
        for tag in relation.tagged_values
        if tag.key == "role"
    }
    assert roles == {"declarations", "bootstrap"}
    assert relations(model, RelationKind.DEPENDENCY, "AppModule", "HighlightDirective")
    standalone = relations(model, RelationKind.DEPENDENCY, "StandaloneComponent", "BadgePipe")
    assert tag_map(standalone[0]) == {"origin": "standalone", "role": "imports"}


def test_unresolved_references_become_findings(project_builder) -> None:
    project_builder.write(APP)

    report = project_builder.extract(mode="angular").report

    by_kind = {}
    for finding in report.findings:
        by_kind.setdefault(finding.kind, []).append(finding)
    refs = [f.tags["ref"] for f in by_kind.get(FindingKind.UNRESOLVED_DECORATOR_REF, [])]
    assert refs == ["NotDeclaredAnywhere"]
    injections = [f.tags["type"] for f in by_kind.get(FindingKind.UNRESOLVED_INJECTION, [])]
    assert injections == ["Ghost"]


def test_framework_edges_disabled_keeps_kinds(project_builder) -> None:
    project_builder.write(APP)

    model = project_builder.extract(mode="angular", include_framework_edges=False).model

    assert not relations(model, RelationKind.DI)
    assert not relations(model, RelationKind.DEPENDENCY)
    assert classifier_named(model, "UserListComponent").kind == ClassifierKind.COMPONENT


def test_auto_mode_detects_angular_dependency(project_builder) -> None:
    project_builder.write(APP)

    result = project_builder.extract()

    assert result.options.angular is True
    assert classifier_named(result.model, "AppModule").kind == ClassifierKind.MODULE


def test_inputs_and_outputs_are_tagged(project_builder) -> None:
    project_builder.write(
        {
            "package.json": '{"dependencies": {"@angular/core": "^17.0.0"}}',
            "src/app/user.ts": "export interface User { id: number }\n",
            "src/app/user-card.component.ts": """
                import { Component, EventEmitter, Input, Output } from '@angular/core';
                import { User } from './user';
                @Component({ selector: 'app-user-card' })
                export class UserCardComponent {
                  @Input() user: User;
                  @Input('cardTitle') title = '';
                  @Input({ alias: 'mode', required: true }) displayMode: string;
                  @Output() selected = new EventEmitter<User>();
                  @Output('closed') close: EventEmitter<Reason> = new EventEmitter();
                  @Input() set size(value: number) {}
                }
            """,
        }
    )

    result = project_builder.extract(mode="angular", include_deps=True)
    card = classifier_named(result.model, "UserCardComponent")

    assert tag_map(card.find_attribute("user")) == {"angular.role": "input"}
    assert tag_map(card.find_attribute("title"))["angular.inputAlias"] == "cardTitle"
    assert tag_map(card.find_attribute("displayMode")) == {
        "angular.role": "input",
        "angular.inputAlias": "mode",
        "angular.inputRequired": "true",
    }
    assert tag_map(card.find_attribute("selected")) == {
        "angular.role": "output",
        "angular.outputPayloadType": "User",
    }
    close = tag_map(card.find_attribute("close"))
    assert close["angular.outputAlias"] == "closed"
    assert close["angular.outputPayloadType"] == "Reason"
    assert tag_map(card.find_attribute("size")) == {"angular.role": "input"}

    payload_tags = {
        (tag.key, tag.value)
        for relation in relations(result.model, RelationKind.DEPENDENCY, "UserCardComponent", "User")
        for tag in relation.tagged_values
    }
    assert {("origin", "output"), ("role", "eventPayload"), ("member", "selected")} <= payload_tags

    unresolved = [f for f in result.report.findings if f.kind == FindingKind.UNRESOLVED_TYPE]
    assert [(f.tags["member"], f.tags["type"]) for f in unresolved] == [("close", "Reason")]


def test_output_payload_edges_need_include_deps(project_builder) -> None:
    project_builder.write(
        {
            "src/app/user.ts": "export interface User { id: number }\n",
            "src/app/picker.component.ts": """
                import { Component, EventEmitter, Output } from '@angular/core';
                import { User } from './user';
                @Component({ selector: 'app-picker' })
                export class PickerComponent {
                  @Output() picked = new EventEmitter<User>();
                  @Output() dropped = new EventEmitter<Missing>();
                }
            """,
        }
    )

    result = project_builder.extract(mode="angular")

    assert not relations(result.model, RelationKind.DEPENDENCY, "PickerComponent", "User")
    assert not [f for f in result.report.findings if f.kind == FindingKind.UNRESOLVED_TYPE]
    picked = classifier_named(result.model, "PickerComponent").find_attribute("picked")
    assert tag_map(picked)["angular.outputPayloadType"] == "User"
