"""
autoremedy — synthesis plane

File: src/autoremedy/synthesis_plane/__init__.py

Purpose
- Synthesis plane: token budgets, content compression, prompt templates,
  edit-plan prompt assembly and parsing, provider adapters.

Functional requirements
- Must be provider-agnostic through the ``TextGenerator`` protocol.
"""

from autoremedy.synthesis_plane.compressor import (
    CompressionError,
    CompressionResult,
    ContentCompressor,
)
from autoremedy.synthesis_plane.edit_plan import EditPlan, parse_edit_plan, strip_code_fences
from autoremedy.synthesis_plane.prompt_builder import BuiltPrompt, PromptBuilder
from autoremedy.synthesis_plane.prompt_templates import (
    PromptTemplateEngine,
    PromptTemplateError,
    RenderedPrompt,
)
from autoremedy.synthesis_plane.tokens import (
    PROVIDER_LIMITS,
    BudgetExceededError,
    ProviderLimits,
    TokenBudget,
    TokenEstimator,
    limits_for,
)

__all__ = [
    "BudgetExceededError",
    "BuiltPrompt",
    "CompressionError",
    "CompressionResult",
    "ContentCompressor",
    "EditPlan",
    "PROVIDER_LIMITS",
    "PromptBuilder",
    "PromptTemplateEngine",
    "PromptTemplateError",
    "ProviderLimits",
    "RenderedPrompt",
    "TokenBudget",
    "TokenEstimator",
    "limits_for",
    "parse_edit_plan",
    "strip_code_fences",
]
