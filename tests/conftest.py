from os import environ


def pytest_sessionstart(session):
    environ["OTEL_PYTHON_CONTEXT"] = "contextvars_context"


def pytest_sessionfinish(session):
    environ.pop("OTEL_PYTHON_CONTEXT")
