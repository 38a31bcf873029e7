"""Recipe catalog — which artifacts exist and what they are made of."""

from certdeploy.core.catalog.recipes import (  # noqa: F401
    RECIPES,
    config_key,
    dependencies_of,
    describe,
    file_name,
    is_private,
    kind_for_key,
)
