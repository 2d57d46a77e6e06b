"""Tests for recipe models and loading."""

from pathlib import Path

import pytest
from conftest import make_recipe_data
from recipe_engine.models import Handler
from recipe_engine.models import Recipe
from recipe_engine.models import RecipeOptions
from recipe_engine.models import StepResult
from recipe_engine.models import StepResultStatus


class TestRecipeFromDict:
    """Tests for Recipe.from_dict."""

    def test_parses_snake_case_recipe(self, recipe_data):
        """A snake_case mapping becomes a fully typed recipe."""
        recipe = Recipe.from_dict(recipe_data)

        assert recipe.recipe_type == "appx:package-recipe"
        assert recipe.schema_version == "1.0"
        assert isinstance(recipe.options, RecipeOptions)
        assert recipe.options.halt_on_error is True
        assert recipe.options.target_environments[0].alias == "dev"
        assert recipe.options.target_environments[0].is_ephemeral is True
        assert [g.alias for g in recipe.step_groups] == ["build", "configure"]
        assert [s.action for s in recipe.step_groups[0].steps] == ["first", "second"]
        assert recipe.handlers == []

    def test_parses_camel_case_recipe(self):
        """The camelCase keys of JSON recipes are accepted."""
        data = {
            "recipeType": "appx:demo-recipe",
            "schemaVersion": 1,
            "options": {
                "skipGroups": ["extra"],
                "skipActions": ["import-data"],
                "haltOnError": False,
                "targetOrgs": [
                    {
                        "orgName": "QA",
                        "alias": "qa",
                        "description": "Persistent QA org",
                        "isScratchOrg": False,
                        "orgReqsJson": "qa-reqs.json",
                    }
                ],
            },
            "recipeStepGroups": [
                {
                    "stepGroupName": "Setup",
                    "alias": "setup",
                    "description": "Set up",
                    "recipeSteps": [
                        {
                            "stepName": "Deploy",
                            "action": "deploy-metadata",
                            "options": {"mdapi_source": "base"},
                            "onSuccess": {"handler": "notify"},
                            "onError": "rollback",
                        }
                    ],
                }
            ],
            "handlers": [{"handlerName": "notify", "channel": "ops"}],
        }

        recipe = Recipe.from_dict(data)

        assert recipe.recipe_type == "appx:demo-recipe"
        assert recipe.schema_version == "1"
        assert recipe.options.skip_groups == ["extra"]
        assert recipe.options.skip_actions == ["import-data"]
        assert recipe.options.halt_on_error is False
        target = recipe.options.target_environments[0]
        assert target.name == "QA"
        assert target.is_ephemeral is False
        assert target.external_requirements_ref == "qa-reqs.json"
        step = recipe.step_groups[0].steps[0]
        assert step.name == "Deploy"
        assert step.options == {"mdapi_source": "base"}
        assert step.on_success == "notify"
        assert step.on_error == "rollback"
        assert recipe.handlers == [Handler(name="notify", payload={"channel": "ops"})]

    def test_missing_options_stays_none(self):
        """A recipe without options loads so the validator can report it."""
        data = make_recipe_data()
        del data["options"]

        recipe = Recipe.from_dict(data)

        assert recipe.options is None

    def test_malformed_values_are_kept(self):
        """Wrong field types are preserved for the validator to diagnose."""
        data = make_recipe_data()
        data["options"]["halt_on_error"] = "yes"
        data["step_groups"] = "not-a-list"

        recipe = Recipe.from_dict(data)

        assert recipe.options.halt_on_error == "yes"
        assert recipe.step_groups == "not-a-list"

    def test_non_mapping_step_raises(self):
        """Steps must be mappings."""
        data = make_recipe_data()
        data["step_groups"][0]["steps"] = ["just-a-string"]

        with pytest.raises(ValueError, match="Each step must be a dictionary"):
            Recipe.from_dict(data)

    def test_non_mapping_root_raises(self):
        """The recipe root must be a mapping."""
        with pytest.raises(ValueError, match="Recipe must be a dictionary"):
            Recipe.from_dict(["not", "a", "dict"])


class TestRecipeFromYaml:
    """Tests for loading recipe files."""

    def test_load_yaml_file(self, temp_dir: Path):
        """YAML recipe files are parsed."""
        recipe_path = temp_dir / "recipe.yaml"
        recipe_path.write_text(
            """
recipe_type: appx:package-recipe
schema_version: "1.0"
options:
  skip_groups: []
  skip_actions: []
  halt_on_error: true
  target_environments:
    - name: Dev
      alias: dev
      description: Dev scratch org
      is_ephemeral: true
      ephemeral_definition: scratch-def.json
step_groups:
  - name: Build
    alias: build
    description: Build it
    steps:
      - name: Say hello
        action: shell-command
        options:
          command: echo hello
handlers: []
"""
        )

        recipe = Recipe.from_yaml(recipe_path)

        assert recipe.step_groups[0].steps[0].options == {"command": "echo hello"}

    def test_load_json_file(self, temp_dir: Path):
        """JSON recipes load through the same path."""
        recipe_path = temp_dir / "recipe.json"
        recipe_path.write_text('{"recipeType": "appx:demo-recipe", "schemaVersion": "1.0", "handlers": []}')

        recipe = Recipe.from_yaml(recipe_path)

        assert recipe.recipe_type == "appx:demo-recipe"

    def test_missing_file(self, temp_dir: Path):
        """Missing files raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="Recipe file not found"):
            Recipe.from_yaml(temp_dir / "nope.yaml")

    def test_non_mapping_document(self, temp_dir: Path):
        """A YAML list is not a recipe."""
        recipe_path = temp_dir / "list.yaml"
        recipe_path.write_text("- a\n- b\n")

        with pytest.raises(ValueError, match="Recipe YAML must be a dictionary"):
            Recipe.from_yaml(recipe_path)


class TestRecipeLookups:
    """Tests for alias lookups."""

    def test_get_step_group(self, recipe):
        assert recipe.get_step_group("configure").name == "Configure"
        assert recipe.get_step_group("missing") is None

    def test_get_target_environment(self, recipe):
        assert recipe.get_target_environment("dev").name == "Dev Scratch"
        assert recipe.get_target_environment("prod") is None

    def test_lookups_tolerate_malformed_recipe(self):
        """Lookups return None rather than failing on unvalidated recipes."""
        recipe = Recipe(recipe_type="x", schema_version="1", options="bad", step_groups="bad")

        assert recipe.get_step_group("build") is None
        assert recipe.get_target_environment("dev") is None


class TestStepResult:
    """Tests for StepResult constructors."""

    def test_constructors(self):
        assert StepResult.success("ok").status == StepResultStatus.SUCCESS
        assert StepResult.warning("hmm").status == StepResultStatus.WARNING
        assert StepResult.error("bad", data={"code": 1}).data == {"code": 1}

    def test_only_error_counts_as_failed(self):
        assert StepResult.error().failed
        assert not StepResult.warning().failed
        assert not StepResult.success().failed
