"""Tests for the action registry."""

import pytest
from recipe_engine.registry import ActionRegistry
from recipe_engine.registry import UnknownActionError


async def _noop(action_context, options):
    return None


class TestActionRegistry:
    """Tests for registering and resolving actions."""

    def test_register_and_resolve(self):
        registry = ActionRegistry("appx:package-recipe")
        registry.register("noop", _noop)

        assert registry.resolve("noop") is _noop
        assert "noop" in registry
        assert len(registry) == 1
        assert registry.actions == ["noop"]

    def test_unknown_action_names_action_and_recipe_type(self):
        registry = ActionRegistry("appx:demo-recipe")

        with pytest.raises(UnknownActionError) as exc_info:
            registry.resolve("install-package")

        assert exc_info.value.action == "install-package"
        assert exc_info.value.recipe_type == "appx:demo-recipe"
        assert "Unknown action" in str(exc_info.value)
        assert "'install-package'" in str(exc_info.value)
        assert "'appx:demo-recipe'" in str(exc_info.value)

    def test_unknown_action_is_lookup_error(self):
        assert issubclass(UnknownActionError, LookupError)

    def test_duplicate_registration_rejected(self):
        registry = ActionRegistry("t")
        registry.register("noop", _noop)

        with pytest.raises(ValueError, match="already registered"):
            registry.register("noop", _noop)

    def test_empty_action_name_rejected(self):
        with pytest.raises(ValueError, match="non-empty"):
            ActionRegistry("t").register("", _noop)

    def test_frozen_registry_rejects_registration(self):
        registry = ActionRegistry("t")
        registry.freeze()

        assert registry.frozen
        with pytest.raises(RuntimeError, match="frozen"):
            registry.register("noop", _noop)
