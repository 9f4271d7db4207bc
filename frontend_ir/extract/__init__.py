"""Extraction passes that turn a parsed program into an IR model."""

from .angular import extract_angular
from .context import DeclarationRecord, DeclarationShape, ExtractionContext, ExtractionOptions
from .declarations import declare_classifiers
from .imports import extract_import_graph
from .members import extract_members_and_relations
from .packages import build_package_map
from .parsing import ParsedProgram, build_program
from .react import extract_react
from .resolver import ModuleResolver
from .routing import extract_angular_routes, extract_react_routes
from .templates import extract_angular_templates
from .tsconfig import CompilerOptions, load_tsconfig

__all__ = [
    "CompilerOptions",
    "DeclarationRecord",
    "DeclarationShape",
    "ExtractionContext",
    "ExtractionOptions",
    "ModuleResolver",
    "ParsedProgram",
    "build_package_map",
    "build_program",
    "declare_classifiers",
    "extract_angular",
    "extract_angular_routes",
    "extract_angular_templates",
    "extract_import_graph",
    "extract_members_and_relations",
    "extract_react",
    "extract_react_routes",
    "load_tsconfig",
]
