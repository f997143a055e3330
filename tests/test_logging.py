from __future__ import annotations

import logging

from grave_registry.logging import ROOT_NAME, get_logger


def test_module_loggers_share_the_package_handlers() -> None:
    first = get_logger("alpha")
    second = get_logger("beta")
    root = logging.getLogger(ROOT_NAME)

    assert first.name == f"{ROOT_NAME}.alpha"
    assert first.handlers == [] and second.handlers == []
    assert first.parent is root and second.parent is root
    assert root.propagate is False

    handler_count = len(root.handlers)
    get_logger("alpha")
    get_logger("gamma")
    assert len(root.handlers) == handler_count >= 1
