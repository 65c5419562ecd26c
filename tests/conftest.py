"""
Shared fixtures for the Bundle Upsell test suites.
"""

import pytest
from pymongo.errors import PyMongoError


class BrokenQuerySet:
    """Stands in for a Document's ``objects`` manager when MongoDB is down."""

    def __call__(self, *args, **kwargs):
        return self

    def _fail(self, *args, **kwargs):
        raise PyMongoError("connection refused")

    __iter__ = _fail
    first = _fail
    modify = _fail
    delete = _fail
    update_one = _fail


@pytest.fixture
def broken_queryset():
    return BrokenQuerySet()


@pytest.fixture
def failing_save():
    """Replacement for Document.save that fails like an unreachable server."""
    def _save(self, *args, **kwargs):
        raise PyMongoError("connection refused")
    return _save
