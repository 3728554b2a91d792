"""
dotacoach - Dota 2 Match Coaching

Turns a finished match into coaching feedback for one player: rule-based
insights, timeline findings, an item build review and ranked key moments.
Across many matches it groups play sessions, flags tilt and tracks
long-term improvement.

Usage:
    from dotacoach import load_match, AnalysisOrchestrator

    match = load_match("match.json")
    result = AnalysisOrchestrator().analyze_match(match, player_slot=0)

    for insight in result.insights:
        print(f"[{insight.severity.value}] {insight.title}")
"""

__version__ = "0.1.0"
__author__ = "dotacoach Contributors"


def __getattr__(name):
    """Lazy import for heavy dependencies."""
    if name == "load_match":
        from dotacoach.core.parser import load_match
        return load_match
    elif name == "match_from_dict":
        from dotacoach.core.parser import match_from_dict
        return match_from_dict
    elif name == "AnalysisOrchestrator":
        from dotacoach.pipeline.orchestrator import AnalysisOrchestrator
        return AnalysisOrchestrator
    elif name == "AnalysisResult":
        from dotacoach.pipeline.orchestrator import AnalysisResult
        return AnalysisResult
    elif name == "HeroBenchmarkStore":
        from dotacoach.analysis.benchmarks import HeroBenchmarkStore
        return HeroBenchmarkStore
    elif name == "HeroCoach":
        from dotacoach.analysis.hero_coaching import HeroCoach
        return HeroCoach
    elif name == "SessionTiltAnalyzer":
        from dotacoach.analysis.sessions import SessionTiltAnalyzer
        return SessionTiltAnalyzer
    elif name == "DatabaseManager":
        from dotacoach.infra.database import DatabaseManager
        return DatabaseManager
    raise AttributeError(f"module 'dotacoach' has no attribute '{name}'")


__all__ = [
    # Version
    "__version__",
    # Ingest
    "load_match",
    "match_from_dict",
    # Pipeline
    "AnalysisOrchestrator",
    "AnalysisResult",
    "HeroBenchmarkStore",
    "HeroCoach",
    "SessionTiltAnalyzer",
    "DatabaseManager",
]
