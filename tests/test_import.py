"""Smoke test: verify the package is importable and versioned."""

from __future__ import annotations


def test_version_attribute() -> None:
    import dock_copy

    assert dock_copy.__version__ == "0.1.0"


def test_get_version_function() -> None:
    from dock_copy import get_version

    assert get_version() == "0.1.0"


def test_sync_api_exported() -> None:
    from dock_copy import ArchiveTransfer, copy_from_container, copy_to_container, create_transfer

    assert callable(create_transfer)
    assert callable(copy_to_container)
    assert callable(copy_from_container)
    assert hasattr(ArchiveTransfer, "execute")


def test_async_api_exported() -> None:
    import inspect

    from dock_copy.async_ import AsyncArchiveTransfer, copy_to_container, create_transfer

    assert inspect.iscoroutinefunction(copy_to_container)
    assert inspect.iscoroutinefunction(AsyncArchiveTransfer.execute)
    assert not inspect.iscoroutinefunction(create_transfer)


def test_all_names_resolve() -> None:
    import dock_copy

    for name in dock_copy.__all__:
        assert hasattr(dock_copy, name), name
