"""Tests for recipe models."""

import pytest
from pydantic import ValidationError

from pvelxc.models.recipe import RecipeSpec, StepSpec


def _recipe(**kwargs):
    data = {
        "name": "demo",
        "title": "Demo",
        "container": {"hostname": "demo"},
    }
    data.update(kwargs)
    return RecipeSpec(**data)


class TestRecipeSpec:
    """Test RecipeSpec model."""

    def test_minimal_recipe(self):
        """Test defaults for a recipe with only the required fields."""
        recipe = _recipe()

        assert recipe.container.hostname == "demo"
        assert recipe.container.features is None
        assert len(recipe.os) == 1
        assert recipe.os[0].label == "Debian 12"
        assert recipe.autologin is False
        assert recipe.steps == []
        assert recipe.required_settings == []

    def test_required_settings(self):
        """Test settings without a default are reported as required."""
        recipe = _recipe(settings={"APP_PORT": 8080, "ADMIN_PASSWORD": None})

        assert recipe.required_settings == ["ADMIN_PASSWORD"]

    def test_reserved_setting_rejected(self):
        """Test container variables cannot be redefined as settings."""
        with pytest.raises(ValidationError, match="reserved"):
            _recipe(settings={"CT_ID": 300})

    def test_setting_name_format(self):
        """Test settings must be upper-case identifiers."""
        with pytest.raises(ValidationError, match="upper-case"):
            _recipe(settings={"app_port": 1})

    def test_empty_os_list_rejected(self):
        """Test at least one OS candidate is needed."""
        with pytest.raises(ValidationError):
            _recipe(os=[])

    def test_steps(self):
        """Test step parsing and the required default."""
        recipe = _recipe(steps=[
            {"name": "Update", "run": "apt-get update"},
            {"name": "Extras", "run": "apt-get install -y ffmpeg", "required": False},
        ])

        assert recipe.steps[0] == StepSpec(name="Update", run="apt-get update")
        assert recipe.steps[1].required is False

    def test_step_unknown_field_rejected(self):
        """Test typos in steps are caught."""
        with pytest.raises(ValidationError):
            StepSpec(name="x", run="true", requird=False)
