"""
MindWell Backend Application Package

This package contains the FastAPI backend for the MindWell mental-health
chat assistant, including:

- main.py: FastAPI application, middleware and router wiring
- chat/turn_processor.py: streaming conversation turn processor
- openai_provider.py: OpenAI client and knowledge-base bootstrap
"""

__version__ = "1.0.0"
