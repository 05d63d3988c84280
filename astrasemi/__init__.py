"""
AstraSemi Assistant - Semiconductor Operations Helper
=====================================================

Internal service for semiconductor-operations staff:
1. CSV summaries, document interpretation, image explanation, glossary
2. Role-based tasks and daily briefings
3. Q&A community forum with voting and reputation
4. Admin console for users and password-reset tickets

All AI output comes from an external LLM; everything else is plain
FastAPI + SQLAlchemy.
"""

__version__ = "1.0.0"
