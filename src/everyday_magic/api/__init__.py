"""Everyday Magic: FastAPI REST API layer.

This package contains the FastAPI application, Pydantic request/response
models, the prompt templates, and the request pipelines.

Modules
-------
main
    FastAPI application with all route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic models for API request and response validation.
prompt_builder
    Recommendation and image-analysis prompt templates.
pipeline
    Prompt -> model -> parse -> sanitize flows behind each endpoint.
"""
