"""
autoremedy — knowledge plane

File: src/autoremedy/knowledge_plane/__init__.py

Purpose
- Knowledge plane: repository tree access, framework detection, architecture
  document parsing, project analysis and candidate file discovery.

Functional requirements
- Must serve the prompt builder, the architecture validator and the
  remediation controller with a read-only ``ProjectContext``.
"""

from autoremedy.knowledge_plane.file_discovery import (
    DiscoveryResult,
    DiscoveryWeights,
    FileCandidate,
    FileDiscovery,
    extract_keywords,
)
from autoremedy.knowledge_plane.frameworks import (
    FRAMEWORK_DETECTORS,
    FrameworkProfile,
    detect_framework,
    framework_by_key,
)
from autoremedy.knowledge_plane.project_analyzer import (
    EditorConventions,
    ProjectAnalyzer,
    ProjectContext,
    ToolCommands,
)
from autoremedy.knowledge_plane.repository import LocalRepository, RepoEntry, RepositoryReader
from autoremedy.knowledge_plane.spec_parser import (
    SpecDocumentParser,
    SpecFinding,
    SpecRules,
)

__all__ = [
    "DiscoveryResult",
    "DiscoveryWeights",
    "EditorConventions",
    "FRAMEWORK_DETECTORS",
    "FileCandidate",
    "FileDiscovery",
    "FrameworkProfile",
    "LocalRepository",
    "ProjectAnalyzer",
    "ProjectContext",
    "RepoEntry",
    "RepositoryReader",
    "SpecDocumentParser",
    "SpecFinding",
    "SpecRules",
    "ToolCommands",
    "detect_framework",
    "extract_keywords",
    "framework_by_key",
]
