"""Ordered UI-framework detectors with their directory conventions."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Final


@dataclass(frozen=True, slots=True)
class FrameworkProfile:
    """Detection markers and conventions for one framework.

    ``markers`` empty means the profile always matches (fallback).
    """

    key: str
    name: str
    markers: tuple[str, ...]
    conventions: Mapping[str, str]
    file_patterns: tuple[re.Pattern[str], ...] = ()
    project_types: tuple[tuple[str, str], ...] = ()
    default_project_type: str = ""
    prompt_rules: str = ""
    presentational_dirs: tuple[str, ...] = field(default_factory=tuple)

    def detect(self, dependencies: Mapping[str, str]) -> bool:
        if not self.markers:
            return True
        return any(marker in dependencies for marker in self.markers)

    def project_type(self, dependencies: Mapping[str, str]) -> str:
        for dependency, label in self.project_types:
            if dependency in dependencies:
                return label
        return self.default_project_type or self.name

    def matches_file_pattern(self, file_name: str) -> bool:
        return any(pattern.search(file_name) for pattern in self.file_patterns)


VUE: Final[FrameworkProfile] = FrameworkProfile(
    key="vue",
    name="Vue.js",
    markers=("vue", "@vue/cli-service", "nuxt"),
    conventions={
        "component": "src/components",
        "composable": "src/composables",
        "view": "src/views",
        "type": "src/types",
        "store": "src/stores",
    },
    file_patterns=(
        re.compile(r"\.vue$"),
        re.compile(r"^use[A-Z].*\.(ts|js)$"),
        re.compile(r"store\.(ts|js)$|\.store\.(ts|js)$"),
    ),
    project_types=(("nuxt", "Nuxt"), ("vite", "Vite + Vue 3")),
    default_project_type="Vue CLI",
    prompt_rules=(
        "Vue Rules: Composition API + <script setup>. Use ref(), computed(), "
        "defineProps<T>(), defineEmits<T>(). NO Options API."
    ),
    presentational_dirs=("src/components/base",),
)

REACT: Final[FrameworkProfile] = FrameworkProfile(
    key="react",
    name="React",
    markers=("react", "react-dom"),
    conventions={
        "component": "src/components",
        "hook": "src/hooks",
        "page": "src/pages",
    },
    file_patterns=(re.compile(r"\.(tsx|jsx)$"), re.compile(r"^use[A-Z].*\.(ts|js)$")),
    project_types=(("next", "Next.js"), ("gatsby", "Gatsby"), ("remix", "Remix")),
    default_project_type="React",
    prompt_rules=(
        "React Rules: Functional components + hooks. Proper deps arrays. NO class components."
    ),
    presentational_dirs=("src/components/ui",),
)

ANGULAR: Final[FrameworkProfile] = FrameworkProfile(
    key="angular",
    name="Angular",
    markers=("@angular/core",),
    conventions={"component": "src/app"},
    file_patterns=(
        re.compile(r"\.component\.ts$"),
        re.compile(r"\.service\.ts$"),
        re.compile(r"\.module\.ts$"),
    ),
    default_project_type="Angular",
    prompt_rules="Angular Rules: Follow style guide. Use standalone components. Proper DI.",
)

SVELTE: Final[FrameworkProfile] = FrameworkProfile(
    key="svelte",
    name="Svelte",
    markers=("svelte",),
    conventions={"component": "src/lib", "route": "src/routes"},
    file_patterns=(re.compile(r"\.svelte$"),),
    project_types=(("@sveltejs/kit", "SvelteKit"),),
    default_project_type="Svelte",
    prompt_rules="Svelte Rules: Svelte 4/5 syntax. Reactive $: statements.",
)

NODE: Final[FrameworkProfile] = FrameworkProfile(
    key="node",
    name="Node.js",
    markers=(),
    conventions={"source": "src"},
    file_patterns=(re.compile(r"\.(ts|js|mjs|cjs)$"),),
    project_types=(
        ("express", "Express"),
        ("fastify", "Fastify"),
        ("koa", "Koa"),
        ("@nestjs/core", "NestJS"),
    ),
    default_project_type="Node.js",
    prompt_rules="Node Rules: async/await. Proper error handling. ES modules.",
)

# Tried in order; the last entry always matches.
FRAMEWORK_DETECTORS: Final[tuple[FrameworkProfile, ...]] = (VUE, REACT, ANGULAR, SVELTE, NODE)


def detect_framework(
    dependencies: Mapping[str, str],
    *,
    detectors: tuple[FrameworkProfile, ...] = FRAMEWORK_DETECTORS,
) -> FrameworkProfile:
    for detector in detectors:
        if detector.detect(dependencies):
            return detector
    return detectors[-1]


def framework_by_key(key: str) -> FrameworkProfile:
    for detector in FRAMEWORK_DETECTORS:
        if detector.key == key:
            return detector
    known = ", ".join(detector.key for detector in FRAMEWORK_DETECTORS)
    raise ValueError(f"unknown framework {key!r}; expected one of: {known}")


__all__ = [
    "ANGULAR",
    "FRAMEWORK_DETECTORS",
    "FrameworkProfile",
    "NODE",
    "REACT",
    "SVELTE",
    "VUE",
    "detect_framework",
    "framework_by_key",
]
