"""Prompt templates for translation and summarization.

Each template is one YAML file in config/prompts/ holding a system and a
user message with ``{placeholder}`` fields and a declaration of its inputs.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

SQL_TRANSLATION = "sql_translation"
RESULT_SUMMARY = "result_summary"


class PromptInput(BaseModel):
    required: bool = False
    default: str | None = None


class PromptTemplate(BaseModel):
    name: str
    version: str
    description: str
    temperature: float = 0.0
    system_prompt: str
    user_prompt: str
    inputs: dict[str, PromptInput] = Field(default_factory=dict)

    def bind(self, values: dict[str, Any]) -> dict[str, Any]:
        """Check required inputs are present and fill declared defaults."""
        missing = [
            name for name, spec in self.inputs.items() if spec.required and name not in values
        ]
        if missing:
            raise ValueError(f"Missing required input '{missing[0]}' for template '{self.name}'")

        defaults = {
            name: spec.default
            for name, spec in self.inputs.items()
            if name not in values and spec.default is not None
        }
        return {**defaults, **values}


class RenderedPrompt(BaseModel):
    system: str
    user: str
    temperature: float


class PromptRenderer:
    """Loads templates from ``prompts_dir`` once and renders them."""

    def __init__(self, prompts_dir: Path = Path("config/prompts")):
        self.prompts_dir = prompts_dir
        self._cache: dict[str, PromptTemplate] = {}

    def load_template(self, name: str) -> PromptTemplate:
        """Get a template, reading its YAML file on first use.

        Raises:
            FileNotFoundError: No <name>.yaml in the prompts directory
            pydantic.ValidationError: The file is not a valid template
        """
        template = self._cache.get(name)
        if template is not None:
            return template

        path = self.prompts_dir / f"{name}.yaml"
        if not path.is_file():
            available = sorted(p.stem for p in self.prompts_dir.glob("*.yaml"))
            raise FileNotFoundError(f"Prompt template not found: {path} (available: {available})")

        template = PromptTemplate.model_validate(yaml.safe_load(path.read_text(encoding="utf-8")))
        self._cache[name] = template
        return template

    def render(self, template_name: str, values: dict[str, Any]) -> RenderedPrompt:
        template = self.load_template(template_name)
        bound = template.bind(values)
        try:
            system = template.system_prompt.format(**bound)
            user = template.user_prompt.format(**bound)
        except KeyError as e:
            raise KeyError(f"Template '{template.name}' uses undefined variable {e}") from e
        return RenderedPrompt(system=system.strip(), user=user.strip(), temperature=template.temperature)

    def clear_cache(self) -> None:
        self._cache.clear()
