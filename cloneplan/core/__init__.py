# Lazy imports keep `from cloneplan.core.complexity import ...` free of the
# provider SDKs (llama_index, openai, anthropic) until they are needed.

__all__ = [
    # Orchestration
    "AnalysisOrchestrator",
    "build_orchestrator",
    "AdmissionController",
    # Resilience
    "BackoffRetrier",
    "RetryPolicy",
    "PartialResultStore",
    # Workflow and quality
    "WorkflowService",
    "ContentValidator",
    # Scoring
    "ComplexityCalculator",
    "ClonabilityScorer",
    "InsightsCache",
    "TechnologyInsightsService",
    "TechnologyKnowledgeBase",
    # Collaborators
    "ProviderChain",
    "build_provider_chain",
    "TechDetectionService",
    "FirstPartyExtractor",
    "InMemoryAnalysisStore",
]

_IMPORT_MAP = {
    "AnalysisOrchestrator": ".orchestrator",
    "build_orchestrator": ".orchestrator",
    "AdmissionController": ".admission",
    "BackoffRetrier": ".retry",
    "RetryPolicy": ".retry",
    "PartialResultStore": ".retry",
    "WorkflowService": ".workflow",
    "ContentValidator": ".validation",
    "ComplexityCalculator": ".complexity",
    "ClonabilityScorer": ".clonability",
    "InsightsCache": ".insights_cache",
    "TechnologyInsightsService": ".insights",
    "TechnologyKnowledgeBase": ".knowledge_base",
    "ProviderChain": ".providers",
    "build_provider_chain": ".providers",
    "TechDetectionService": ".tech_detection",
    "FirstPartyExtractor": ".first_party",
    "InMemoryAnalysisStore": ".storage",
}


def __getattr__(name):
    if name in _IMPORT_MAP:
        import importlib
        module = importlib.import_module(_IMPORT_MAP[name], __package__)
        return getattr(module, name)
    raise AttributeError(f"module 'cloneplan.core' has no attribute {name}")
