"""Every module of the package imports cleanly."""

import importlib

import pytest

MODULES = [
    "saywith.api.dependencies",
    "saywith.api.routes.access",
    "saywith.api.routes.health",
    "saywith.api.routes.messages",
    "saywith.api.routes.templates",
    "saywith.config.settings",
    "saywith.core.messages.catalog",
    "saywith.core.messages.errors",
    "saywith.core.messages.models",
    "saywith.core.messages.text",
    "saywith.core.messages.workflow",
    "saywith.infrastructure.qr.generator",
    "saywith.infrastructure.snowflake.client",
    "saywith.infrastructure.snowflake.push_ids",
    "saywith.infrastructure.snowflake.repositories.messages",
    "saywith.infrastructure.storage.client",
    "saywith.infrastructure.storage.custom",
    "saywith.infrastructure.storage.factory",
    "saywith.main",
]


@pytest.mark.parametrize("module_name", MODULES)
def test_module_imports(module_name):
    assert importlib.import_module(module_name) is not None
